import asyncio
import json
import unittest
from unittest import mock

from config import ConnectionConfig
from renderer_engine import RendererEngine


class TestRendererEngine(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.received = asyncio.Queue()

        async def handle(reader, writer):
            while True:
                line = await reader.readline()
                if not line:
                    break
                await self.received.put(json.loads(line))
            writer.close()

        self.server = await asyncio.start_server(handle, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]
        self.statuses = []

    async def asyncTearDown(self):
        self.server.close()
        await self.server.wait_closed()

    def _engine(self, **overrides):
        cfg = ConnectionConfig(host="127.0.0.1", port=self.port, reconnect_delay_ms=50)
        for name, value in overrides.items():
            setattr(cfg, name, value)
        return RendererEngine(cfg, lambda msg, ok: self.statuses.append(ok))

    async def test_sends_json_lines(self):
        engine = self._engine()
        await engine.start()
        try:
            self.assertTrue(engine.connected)
            self.assertTrue(engine.begin(3, 10.0, 20.0, (1.0, 0.5, 0.0)))
            self.assertTrue(engine.end(3))
            first = await asyncio.wait_for(self.received.get(), timeout=2.0)
            second = await asyncio.wait_for(self.received.get(), timeout=2.0)
        finally:
            await engine.stop()

        self.assertEqual(first, {"cmd": "begin", "id": 3, "x": 10.0, "y": 20.0,
                                 "color": [1.0, 0.5, 0.0]})
        self.assertEqual(second, {"cmd": "end", "id": 3})
        self.assertEqual(engine.sent, 2)
        self.assertEqual(self.statuses, [True, False])

    async def test_not_running_drops(self):
        engine = self._engine()
        self.assertFalse(engine.clear())
        self.assertEqual(engine.dropped, 1)

    async def test_unreachable_renderer_drops_commands(self):
        self.server.close()
        await self.server.wait_closed()
        engine = self._engine()
        await engine.start()
        try:
            self.assertFalse(engine.connected)
            self.assertFalse(engine.ready)
            self.assertFalse(engine.clear())
            self.assertEqual(engine.dropped, 1)
            self.assertEqual(self.statuses, [False])
        finally:
            await engine.stop()

    async def test_full_queue_drop_is_logged(self):
        engine = self._engine(auto_connect=False)
        engine.running = True
        engine.cmd_queue = asyncio.Queue(maxsize=1)
        engine.connected = True

        with mock.patch("renderer_sink.log_event") as log:
            self.assertTrue(engine.clear())
            self.assertTrue(engine.clear())

        self.assertEqual(engine.dropped, 1)
        log.assert_called_once()
        self.assertIn("queue full", log.call_args[0][2])

    async def test_dry_run_never_connects(self):
        engine = self._engine(dry_run=True)
        await engine.start()
        try:
            self.assertFalse(engine.connected)
            self.assertTrue(engine.ready)
            engine.clear()
            for _ in range(20):
                if engine.sent:
                    break
                await asyncio.sleep(0.05)
        finally:
            await engine.stop()
        self.assertEqual(engine.sent, 1)
        self.assertTrue(self.received.empty())


if __name__ == "__main__":
    unittest.main()
