import unittest

from dupdirs.errors import ReadError
from dupdirs.index.records import FileRecord, parent_directory


class FileRecordTest(unittest.TestCase):
    def test_directory_is_immediate_parent(self):
        record = FileRecord.hashed('root/a/b/file.txt', b'\x01' * 16)

        self.assertEqual('root/a/b', record.directory)
        self.assertEqual('file.txt', record.name)
        self.assertIsNone(record.error)

    def test_relative_file_at_top_level(self):
        self.assertEqual('.', parent_directory('file.txt'))
        self.assertEqual('/', parent_directory('/file.txt'))

    def test_failed_record_keeps_error(self):
        error = ReadError('root/locked.txt', 'Permission denied')
        record = FileRecord.failed('root/locked.txt', error)

        self.assertIs(error, record.error)
        self.assertEqual(b'', record.fingerprint)
        self.assertEqual('root', record.directory)
        self.assertEqual('root/locked.txt: Permission denied', str(error))
        self.assertEqual('root/locked.txt', error.path)

    def test_records_are_immutable(self):
        record = FileRecord.hashed('d/f', b'x')
        with self.assertRaises(AttributeError):
            record.fingerprint = b'y'


if __name__ == '__main__':
    unittest.main()
