import io
import unittest

import msgpack

from dupdirs.index.records import FileRecord
from dupdirs.report.formatter import MsgpackReportWriter, read_msgpack_report
from dupdirs.report.match import MatchResult


def result(directory_a: str, directory_b: str, *names: tuple[str, str]) -> MatchResult:
    return MatchResult(directory_a, directory_b, [
        (FileRecord.hashed(f"{directory_a}/{a}", a.encode()), FileRecord.hashed(f"{directory_b}/{b}", a.encode()))
        for a, b in names
    ])


class MatchResultTest(unittest.TestCase):
    def test_count(self):
        self.assertEqual(0, result('x', 'y').count)
        self.assertEqual(2, result('x', 'y', ('a', 'a'), ('b', 'c')).count)

    def test_msgpack_layout(self):
        data = result('left', 'right', ('a.txt', 'b.txt')).to_msgpack()

        self.assertEqual(['left', 'right', [['left/a.txt', 'right/b.txt', b'a.txt']]], msgpack.loads(data))

    def test_from_msgpack(self):
        original = result('left', 'right', ('a.txt', 'a.txt'), ('b.txt', 'c.txt'))
        restored = MatchResult.from_msgpack(original.to_msgpack())

        self.assertEqual(original, restored)
        self.assertEqual('left', restored.matches[0][0].directory)
        self.assertEqual('right', restored.matches[0][1].directory)

    def test_msgpack_report_stream(self):
        results = [result('b', 'c', ('x', 'x')), result('a', 'b'), result('a', 'c', ('y', 'y'))]
        out = io.BytesIO()

        written = MsgpackReportWriter(repeated=1).write(out, results)
        out.seek(0)

        self.assertEqual(2, written)
        self.assertEqual([('a', 'c'), ('b', 'c')], [r.sort_key for r in read_msgpack_report(out)])


if __name__ == '__main__':
    unittest.main()
