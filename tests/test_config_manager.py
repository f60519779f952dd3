"""Tests for configuration management."""

import json
import os
import shutil
import tempfile
import unittest

import yaml

from statement_ledger.utils.config_manager import ConfigManager
from statement_ledger.models.core import ParserConfig, InstitutionConfig


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, 'test_config.json')

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_json(self, data):
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False)

    def test_default_config_loading(self):
        """Defaults are used when the file does not exist"""
        manager = ConfigManager(config_path="nonexistent_file.json")
        config = manager.load_config()

        self.assertIsInstance(config, ParserConfig)
        self.assertEqual(config.default_y_tolerance, 5.0)
        self.assertEqual(config.decimal_places, 2)
        self.assertEqual(config.rounding, "ROUND_HALF_UP")
        self.assertEqual(config.currency, "CNY")
        self.assertEqual(config.page_separator, "--- PAGE BREAK ---")
        self.assertEqual(config.institutions, {})
        self.assertEqual(config.category_rules, [])

    def test_config_file_loading(self):
        self._write_json({
            "default_y_tolerance": 7,
            "decimal_places": 3,
            "rounding": "ROUND_HALF_EVEN",
            "currency": "USD",
            "institutions": {
                "ICBC": {"y_tolerance": 30, "end_markers": ["合计"]}
            },
        })

        manager = ConfigManager(config_path=self.config_file)
        config = manager.load_config()

        self.assertEqual(config.default_y_tolerance, 7.0)
        self.assertEqual(config.decimal_places, 3)
        self.assertEqual(config.rounding, "ROUND_HALF_EVEN")
        self.assertEqual(config.currency, "USD")

        icbc = manager.get_institution_config("icbc")
        self.assertIsInstance(icbc, InstitutionConfig)
        self.assertEqual(icbc.name, "icbc")
        self.assertEqual(icbc.y_tolerance, 30)
        self.assertEqual(icbc.end_markers, ["合计"])
        self.assertIsNone(icbc.grouping)
        self.assertIsNone(manager.get_institution_config("minsheng"))

    def test_yaml_loading(self):
        yaml_file = os.path.join(self.temp_dir, 'config.yml')
        with open(yaml_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump({
                "default_x_tolerance": 2.5,
                "category_rules": [{"id": "pets", "name": "宠物", "keywords": ["猫粮"]}],
            }, f, allow_unicode=True)

        config = ConfigManager(config_path=yaml_file).load_config()

        self.assertEqual(config.default_x_tolerance, 2.5)
        self.assertEqual(config.category_rules[0]["id"], "pets")

    def test_empty_yaml_uses_defaults(self):
        yaml_file = os.path.join(self.temp_dir, 'empty.yaml')
        open(yaml_file, 'w').close()

        config = ConfigManager(config_path=yaml_file).load_config()
        self.assertEqual(config.default_y_tolerance, 5.0)

    def test_invalid_grouping_falls_back_to_defaults(self):
        self._write_json({
            "currency": "USD",
            "institutions": {"icbc": {"grouping": "diagonal"}},
        })

        config = ConfigManager(config_path=self.config_file).load_config()

        self.assertEqual(config.currency, "CNY")
        self.assertEqual(config.institutions, {})

    def test_invalid_rounding_falls_back_to_defaults(self):
        self._write_json({"rounding": "ROUND_SIDEWAYS", "decimal_places": 4})

        config = ConfigManager(config_path=self.config_file).load_config()

        self.assertEqual(config.rounding, "ROUND_HALF_UP")
        self.assertEqual(config.decimal_places, 2)

    def test_unknown_institution_field_falls_back_to_defaults(self):
        self._write_json({"institutions": {"icbc": {"parser_type": "pdf"}}})

        config = ConfigManager(config_path=self.config_file).load_config()
        self.assertEqual(config.institutions, {})

    def test_negative_tolerance_falls_back_to_defaults(self):
        self._write_json({"default_y_tolerance": -1})

        config = ConfigManager(config_path=self.config_file).load_config()
        self.assertEqual(config.default_y_tolerance, 5.0)

    def test_category_rules_must_have_keywords(self):
        self._write_json({"category_rules": [{"id": "pets"}]})

        config = ConfigManager(config_path=self.config_file).load_config()
        self.assertEqual(config.category_rules, [])

    def test_config_template_generation(self):
        """A saved YAML template loads back as a valid configuration"""
        template_file = os.path.join(self.temp_dir, 'nested', 'template.yml')

        manager = ConfigManager()
        manager.save_config_template(template_file)
        self.assertTrue(os.path.exists(template_file))

        config = ConfigManager(config_path=template_file).load_config()
        self.assertEqual(config.institutions["icbc"].y_tolerance, 25.0)
        self.assertEqual(config.institutions["minsheng"].start_markers, ["凭证类型"])
        self.assertEqual(len(config.category_rules), 1)

    def test_json_template_generation(self):
        template_file = os.path.join(self.temp_dir, 'template.json')
        ConfigManager().save_config_template(template_file)

        with open(template_file, encoding='utf-8') as f:
            template = json.load(f)

        self.assertIn('institutions', template)
        self.assertIn('icbc', template['institutions'])
        self.assertEqual(template['page_separator'], "--- PAGE BREAK ---")

    def test_config_caching(self):
        self._write_json({"currency": "USD"})
        manager = ConfigManager(config_path=self.config_file)

        self.assertEqual(manager.load_config().currency, "USD")

        self._write_json({"currency": "EUR"})
        self.assertEqual(manager.load_config().currency, "USD")
        self.assertEqual(manager.load_config(force_reload=True).currency, "EUR")

        manager.reset_config()
        self.assertEqual(manager.load_config().currency, "EUR")


if __name__ == '__main__':
    unittest.main()
