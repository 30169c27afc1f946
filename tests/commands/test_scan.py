"""Tests for traversal, hashing and grouping stages."""
import asyncio
import re
import tempfile
import unittest
from pathlib import Path

from dupdirs.commands.scan import HashWorkers, group_by_directory, traverse
from dupdirs.errors import ReadError, WalkError
from dupdirs.index.records import FileRecord
from dupdirs.utils.cancellation import CancellationToken, FirstError
from dupdirs.utils.channel import Channel
from dupdirs.utils.processor import Processor
from dupdirs.utils.walker import TraversalPolicy

from ..test_utils import FailingProcessor, make_tree


async def collect(channel: Channel) -> list:
    return [item async for item in channel]


class TraverseTest(unittest.TestCase):
    def test_emits_candidates_and_closes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'a': {'one.txt': b'1', 'two.log': b'2'}, 'b': {'three.txt': b'3'}})

            async def scenario():
                token = CancellationToken()
                failure = FirstError()
                paths = Channel(token)
                async with asyncio.TaskGroup() as tg:
                    tg.create_task(traverse(root, TraversalPolicy(re.compile(r'\.log$')), paths, failure))
                    found = await collect(paths)
                return found, failure

            found, failure = asyncio.run(scenario())

            self.assertIsNone(failure.error)
            self.assertEqual([str(root / 'a' / 'one.txt'), str(root / 'b' / 'three.txt')], found)

    def test_walk_error_goes_to_slot(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / 'missing'

            async def scenario():
                token = CancellationToken()
                failure = FirstError()
                paths = Channel(token)
                async with asyncio.TaskGroup() as tg:
                    tg.create_task(traverse(missing, TraversalPolicy(), paths, failure))
                    found = await collect(paths)
                return found, failure, token

            with self.assertLogs('dupdirs.commands.scan', level='ERROR'):
                found, failure, token = asyncio.run(scenario())

            self.assertEqual([], found)
            self.assertIsInstance(failure.error, WalkError)
            self.assertIsInstance(failure.error.__cause__, FileNotFoundError)
            self.assertIn(str(missing), str(failure.error))
            # Traversal failures do not cancel the run by themselves
            self.assertFalse(token.cancelled)

    def test_cancellation_reports_walk_canceled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {f'file{i}.txt': b'x' for i in range(10)})

            async def scenario():
                token = CancellationToken()
                failure = FirstError()
                paths = Channel(token)
                walker = asyncio.create_task(traverse(root, TraversalPolicy(), paths, failure))
                first = await paths.receive()
                token.cancel()
                await asyncio.wait_for(walker, 1)
                return first, failure

            first, failure = asyncio.run(scenario())

            self.assertEqual(str(root / 'file0.txt'), first)
            self.assertIsInstance(failure.error, WalkError)
            self.assertEqual('walk canceled', str(failure.error))


class HashWorkersTest(unittest.TestCase):
    def test_every_path_hashed_once(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            layout = {f'dir{d}': {f'f{i}.txt': f'{i}'.encode() for i in range(5)} for d in range(3)}
            make_tree(root, layout)
            files = sorted(str(p) for p in root.rglob('*.txt'))

            async def scenario(processor):
                token = CancellationToken()
                paths = Channel(token)
                records = Channel(token)

                async def feed():
                    for f in files:
                        await paths.send(f)
                    await paths.close()

                async with asyncio.TaskGroup() as tg:
                    tg.create_task(feed())
                    tg.create_task(HashWorkers(processor, 'md5').run(paths, records, 4))
                    return await collect(records)

            with Processor(4) as processor:
                hashed = asyncio.run(scenario(processor))

            self.assertEqual(files, sorted(r.path for r in hashed))
            self.assertTrue(all(r.error is None and len(r.fingerprint) == 16 for r in hashed))
            by_name = {}
            for r in hashed:
                by_name.setdefault(r.name, set()).add(r.fingerprint)
            self.assertTrue(all(len(fingerprints) == 1 for fingerprints in by_name.values()))

    def test_read_failure_is_emitted_not_dropped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'ok.txt': b'ok', 'locked.txt': b'secret'})

            with FailingProcessor(1, r'^locked') as processor:
                async def scenario():
                    workers = HashWorkers(processor, 'md5')
                    return (await workers.fingerprint(str(root / 'ok.txt')),
                            await workers.fingerprint(str(root / 'locked.txt')))

                ok, locked = asyncio.run(scenario())

            self.assertIsNone(ok.error)
            self.assertIsInstance(locked.error, ReadError)
            self.assertEqual(str(root / 'locked.txt'), locked.error.path)
            self.assertIsInstance(locked.error.__cause__, PermissionError)
            self.assertIn('Permission denied', str(locked.error))


class GroupByDirectoryTest(unittest.TestCase):
    def test_groups_by_parent_in_arrival_order(self):
        records = [
            FileRecord.hashed('r/a/2.txt', b'2'),
            FileRecord.hashed('r/b/1.txt', b'1'),
            FileRecord.hashed('r/a/1.txt', b'1'),
            FileRecord.hashed('r/a/sub/1.txt', b'1'),
        ]

        async def scenario():
            token = CancellationToken()
            channel = Channel(token, capacity=len(records) + 1)
            for r in records:
                await channel.send(r)
            await channel.close()
            return await group_by_directory(channel)

        groups = asyncio.run(scenario())

        self.assertEqual({'r/a', 'r/b', 'r/a/sub'}, set(groups))
        self.assertEqual(['r/a/2.txt', 'r/a/1.txt'], [r.path for r in groups['r/a']])
        self.assertEqual(['r/b/1.txt'], [r.path for r in groups['r/b']])

    def test_first_error_stops_grouping(self):
        error = ReadError('r/a/bad.txt', 'Permission denied')
        records = [
            FileRecord.hashed('r/a/1.txt', b'1'),
            FileRecord.failed('r/a/bad.txt', error),
            FileRecord.failed('r/b/worse.txt', ReadError('r/b/worse.txt', 'I/O error')),
        ]

        async def scenario():
            token = CancellationToken()
            channel = Channel(token, capacity=len(records) + 1)
            for r in records:
                await channel.send(r)
            await channel.close()
            return await group_by_directory(channel)

        with self.assertRaises(ReadError) as cm:
            asyncio.run(scenario())
        self.assertIs(error, cm.exception)

    def test_empty_stream(self):
        async def scenario():
            channel = Channel(CancellationToken())
            await channel.close()
            return await group_by_directory(channel)

        self.assertEqual({}, asyncio.run(scenario()))


if __name__ == '__main__':
    unittest.main()
