import asyncio
import json
import unittest

from config import Config
from orchestrator import Orchestrator
from renderer_sink import RecordingSink
from session_manager import live_path_count


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


class TestHandleMessage(unittest.TestCase):
    def setUp(self):
        self.config = Config(random_seed=5)
        self.sink = RecordingSink()
        self.orch = Orchestrator(self.config, self.sink, clock=FakeClock())

    def test_key_press_admits_path(self):
        admission = self.orch.handle_message('{"type": "pianoKeyPress", "key": "C4"}')
        self.assertIsNotNone(admission)
        self.assertEqual(admission.path.key_id, "c4")
        self.assertIs(self.orch.context.current_session, admission.session)

    def test_ghost_key_press_admits_path(self):
        admission = self.orch.handle_message({"type": "ghostKeyPress", "key": "g5"})
        self.assertEqual(admission.session.added_count, 1)

    def test_unknown_key_ignored(self):
        self.assertIsNone(self.orch.handle_message('{"type": "pianoKeyPress", "key": "h4"}'))
        self.assertEqual(self.orch.context.sessions, [])

    def test_unknown_key_sends_nothing(self):
        clock = self.orch.context.clock
        self.assertIsNone(self.orch.handle_message('{"type": "pianoKeyPress", "key": "h4"}'))
        for _ in range(5):
            clock.now += 0.015
            self.orch.scheduler.tick()
        self.assertEqual(self.sink.commands, [])
        self.assertEqual(live_path_count(self.orch.context), 0)
        self.assertIsNone(self.orch.context.current_session)

    def test_resize_updates_allocator(self):
        self.orch.handle_message('{"type": "parentResize", "width": 800, "height": 600}')
        allocator = self.orch.context.allocator
        self.assertEqual((allocator.width, allocator.height), (800.0, 600.0))

    def test_malformed_message_ignored(self):
        self.assertIsNone(self.orch.handle_message("{oops"))
        self.assertIsNone(self.orch.handle_message('{"type": "pianoKeyPress"}'))
        self.assertEqual(self.orch.context.sessions, [])
        self.assertEqual(self.sink.commands, [])


class TestOrchestratorRun(unittest.IsolatedAsyncioTestCase):
    async def test_run_without_control_server(self):
        config = Config(random_seed=2)
        config.scheduler.tick_ms = 5
        config.scheduler.prime_delay_ms = 0
        sink = RecordingSink()
        orch = Orchestrator(config, sink)
        orch.handle_message({"type": "pianoKeyPress", "key": "c4"})

        task = asyncio.create_task(orch.run(serve_control=False))
        await asyncio.sleep(0.05)
        orch.stop()
        await asyncio.wait_for(task, timeout=2.0)

        self.assertIn("begin", sink.kinds())
        self.assertGreater(orch.scheduler.tick_count, 0)

    async def test_control_socket_delivers_key_presses(self):
        config = Config(random_seed=3)
        config.control.port = 0
        config.idle.enabled = False
        sink = RecordingSink()
        orch = Orchestrator(config, sink)
        stop = asyncio.Event()
        task = asyncio.create_task(orch.run(stop))

        for _ in range(50):
            if orch._server is not None:
                break
            await asyncio.sleep(0.01)
        port = orch._server.sockets[0].getsockname()[1]

        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(json.dumps({"type": "pianoKeyPress", "key": "E4"}).encode() + b"\n")
        writer.write(b"garbage\n")
        writer.write(json.dumps({"type": "pianoKeyPress", "key": "a4"}).encode() + b"\n")
        await writer.drain()

        for _ in range(100):
            if orch.context.next_path_id > 2:
                break
            await asyncio.sleep(0.01)

        stop.set()
        await asyncio.wait_for(task, timeout=2.0)
        writer.close()

        self.assertEqual([s.added_count for s in orch.context.sessions], [2])


if __name__ == "__main__":
    unittest.main()
