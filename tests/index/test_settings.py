import os
import tempfile
import textwrap
import unittest
from pathlib import Path

from dupdirs.errors import ConfigError
from dupdirs.index.settings import CONFIG_ENV, RunConfig, Settings, resolve_run_config


class SettingsTest(unittest.TestCase):
    def test_empty_without_file(self):
        settings = Settings()
        self.assertIsNone(settings.path)
        self.assertEqual('fallback', settings.get('scan.threads', 'fallback'))

    def test_dot_notation(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'settings.toml'
            path.write_text(textwrap.dedent('''
                [scan]
                threads = 3
                max = "10MB"

                [report]
                repeated = 2
                '''))

            settings = Settings(path)

            self.assertEqual(3, settings.get('scan.threads'))
            self.assertEqual('10MB', settings.get('scan.max'))
            self.assertEqual(2, settings.get('report.repeated'))
            self.assertIsNone(settings.get('scan.threads.nested'))
            self.assertIsNone(settings.get('missing'))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ConfigError) as cm:
                Settings(Path(tmpdir) / 'absent.toml')
            self.assertIn('cannot read settings file', str(cm.exception))

    def test_invalid_toml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'settings.toml'
            path.write_text('[scan\nthreads = ')
            with self.assertRaises(ConfigError) as cm:
                Settings(path)
            self.assertIn('invalid settings file', str(cm.exception))

    def test_from_environment(self):
        saved = os.environ.pop(CONFIG_ENV, None)
        try:
            self.assertIsNone(Settings.from_environment().path)

            with tempfile.TemporaryDirectory() as tmpdir:
                path = Path(tmpdir) / 'settings.toml'
                path.write_text('[scan]\nthreads = 5\n')
                os.environ[CONFIG_ENV] = str(path)

                self.assertEqual(5, Settings.from_environment().get('scan.threads'))
                self.assertIsNone(Settings.from_environment(Path(tmpdir) / 'settings.toml').get('x'))
        finally:
            os.environ.pop(CONFIG_ENV, None)
            if saved is not None:
                os.environ[CONFIG_ENV] = saved


class ResolveRunConfigTest(unittest.TestCase):
    def test_defaults(self):
        config = resolve_run_config(Settings(), directory='some/dir')

        self.assertIsInstance(config, RunConfig)
        self.assertEqual(Path('some/dir'), config.directory)
        self.assertIsNone(config.policy.exclude)
        self.assertEqual(0, config.policy.min_size)
        self.assertEqual(1 << 30, config.policy.max_size)
        self.assertEqual(8, config.workers)
        self.assertEqual(1, config.repeated)
        self.assertEqual('md5', config.algorithm)
        self.assertEqual('text', config.report_format)

    def test_explicit_values_override_settings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'settings.toml'
            path.write_text(textwrap.dedent('''
                [scan]
                threads = 3
                avoid = "\\\\.git"
                min = "1KB"
                algorithm = "sha256"

                [report]
                repeated = 4
                '''))
            settings = Settings(path)

            config = resolve_run_config(settings, directory='d', threads=6, min_size='2KB')

            self.assertEqual(6, config.workers)
            self.assertEqual(2048, config.policy.min_size)
            self.assertEqual(4, config.repeated)
            self.assertEqual('sha256', config.algorithm)
            self.assertEqual(r'\.git', config.policy.exclude.pattern)

    def test_invalid_values(self):
        cases = [
            dict(directory=''),
            dict(directory=None),
            dict(directory='d', avoid='(unclosed'),
            dict(directory='d', min_size='ten'),
            dict(directory='d', max_size='10XB'),
            dict(directory='d', min_size='2KB', max_size='1KB'),
            dict(directory='d', threads=0),
            dict(directory='d', repeated=-1),
            dict(directory='d', algorithm='crc32'),
            dict(directory='d', report_format='xml'),
        ]
        for kwargs in cases:
            with self.subTest(**{k: repr(v) for k, v in kwargs.items()}):
                with self.assertRaises(ConfigError):
                    resolve_run_config(Settings(), **kwargs)

    def test_missing_directory_message(self):
        with self.assertRaises(ConfigError) as cm:
            resolve_run_config(Settings(), directory=None)
        self.assertEqual('directory must be provided', str(cm.exception))


if __name__ == '__main__':
    unittest.main()
