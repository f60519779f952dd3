"""Command-line interface for the statement ledger."""

import json
import sys
import click
from typing import List, Optional, Dict, Any
import logging

from .utils.config_manager import ConfigManager
from .utils.error_handler import ErrorHandler
from .utils.importer import StatementImporter, ImportResult
from .utils.ledger import TransactionLedger
from .utils.calculator import calculator_from_config
from .utils.categorizer import default_categorizer
from .parsers.registry import registry_from_config
from .models.core import UNKNOWN_INSTITUTION


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class StatementLedgerCLI:
    """Wires configuration, registry, importer and ledger together"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        self.error_handler = ErrorHandler(self.config.log_directory)
        self.registry = registry_from_config(self.config)
        self.importer = StatementImporter(
            registry=self.registry,
            config=self.config,
            error_handler=self.error_handler,
        )
        categorizer = default_categorizer.with_extra_rules(self.config.category_rules)
        self.ledger = TransactionLedger(calculator_from_config(self.config), categorizer)

    def parse_files(self, file_paths: List[str], institution: Optional[str] = None) -> List[ImportResult]:
        if institution and institution != UNKNOWN_INSTITUTION and self.registry.get_profile(institution) is None:
            raise click.BadParameter(
                f"unknown institution '{institution}' "
                f"(choose from: {', '.join(p.id for p in self.registry.profiles)})",
                param_hint='--institution',
            )
        return self.importer.import_files(file_paths, self.ledger, known_institution=institution)

    def build_report(self, results: List[ImportResult]) -> Dict[str, Any]:
        """JSON-serializable view of a batch"""
        documents = []
        for result in results:
            documents.append({
                'source_file': result.source_file,
                'success': result.success,
                'institution_id': result.institution_id,
                'institution_name': result.result.institution_name if result.result else '',
                'account_info': result.result.account_info.to_dict() if result.result else None,
                'summary': result.result.summary.to_dict() if result.result else None,
                'transaction_count': result.transaction_count,
                'added_count': result.added_count,
                'error': result.error,
                'warnings': result.warnings,
            })

        return {
            'documents': documents,
            'summary': self.ledger.summary().to_dict(),
            'transactions': self.ledger.to_records(),
        }

    def generate_config_template(self, output_path: str) -> bool:
        try:
            self.config_manager.save_config_template(output_path)
            return True
        except Exception as e:
            self.error_handler.log_error(
                f"Failed to generate config template: {str(e)}",
                "INVALID_CONFIG_FORMAT",
                file_path=output_path,
                exception=e
            )
            return False


def _echo_results(cli_instance: StatementLedgerCLI, results: List[ImportResult]):
    for result in results:
        if result.success:
            parsed = result.result
            click.echo(f"✓ {result.source_file}: {parsed.institution_name} "
                       f"({result.transaction_count} transactions, {result.added_count} added)")
            if parsed.account_info.account_name or parsed.account_info.account_number:
                click.echo(f"  Account: {parsed.account_info.account_name} {parsed.account_info.account_number}".rstrip())
            if parsed.account_info.period:
                click.echo(f"  Period: {parsed.account_info.period}")
            for warning in result.warnings:
                click.echo(f"  ⚠ {warning}")
        else:
            click.echo(f"✗ {result.source_file}: {result.error}")

    summary = cli_instance.ledger.summary()
    click.echo()
    click.echo(f"Transactions: {summary.transaction_count}")
    click.echo(f"  Income:  {summary.total_income} ({summary.income_count})")
    click.echo(f"  Expense: {summary.total_expense} ({summary.expense_count})")
    click.echo(f"  Balance: {summary.balance}")


# CLI Commands using Click
@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Statement Ledger - Turn bank statement PDFs into categorized transactions"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj['cli'] = StatementLedgerCLI(config)


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path())
@click.option('--json', 'as_json', is_flag=True, help='Print the ledger as JSON')
@click.option('--institution', '-i', help='Skip detection and parse as this institution id')
@click.option('--stats', is_flag=True, help='Show per-category and per-month totals')
@click.option('--report', '-r', help='Save an error report to the specified file')
@click.pass_context
def parse(ctx, files, as_json, institution, stats, report):
    """Parse statement documents into one ledger"""

    cli_instance = ctx.obj['cli']

    results = cli_instance.parse_files(list(files), institution)

    if as_json:
        click.echo(json.dumps(cli_instance.build_report(results), ensure_ascii=False, indent=2))
    else:
        _echo_results(cli_instance, results)

        if stats and len(cli_instance.ledger):
            click.echo()
            click.echo("By category:")
            click.echo(cli_instance.ledger.category_stats().to_string(index=False))
            click.echo()
            click.echo("By month:")
            click.echo(cli_instance.ledger.monthly_stats().to_string(index=False))

    if report:
        cli_instance.error_handler.generate_error_report(report)
        if not as_json:
            click.echo(f"  Report saved: {report}")

    if not any(r.success for r in results):
        sys.exit(1)


@cli.command()
@click.pass_context
def institutions(ctx):
    """List supported institutions in detection order"""

    cli_instance = ctx.obj['cli']
    for profile in cli_instance.registry.profiles:
        layout = profile.layout
        click.echo(f"{profile.id}: {profile.name} "
                   f"(grouping={layout.grouping}, y_tolerance={layout.y_tolerance:g})")


@cli.command()
@click.argument('output_path', default='statement_ledger.yml')
@click.option('--format', type=click.Choice(['json', 'yaml']), default='yaml', help='Configuration file format')
@click.pass_context
def init_config(ctx, output_path, format):
    """Generate configuration template file"""

    cli_instance = ctx.obj['cli']

    if format == 'yaml' and not output_path.endswith(('.yml', '.yaml')):
        output_path = output_path.replace('.json', '.yml')
    elif format == 'json' and not output_path.endswith('.json'):
        output_path = output_path.replace('.yml', '.json').replace('.yaml', '.json')

    if cli_instance.generate_config_template(output_path):
        click.echo(f"✓ Configuration template generated: {output_path}")
        click.echo("  Edit the file to tune layout tolerances and category rules")
    else:
        click.echo("✗ Failed to generate configuration template")
        sys.exit(1)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
