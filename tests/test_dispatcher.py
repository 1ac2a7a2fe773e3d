import io
import unittest
from unittest import mock

from sse_pipe.dispatcher import Dispatcher, build_environment, describe, format_event
from sse_pipe.errors import EventLimitReached
from sse_pipe.options import ConnectionOptions
from sse_pipe.parser import Event, FrameParser
from sse_pipe.reply import ReplyPoster
from sse_pipe.runner import SubprocessResult


def options(**kwargs):
    kwargs.setdefault('url', 'http://example.com/stream')
    kwargs.setdefault('insecure', True)
    return ConnectionOptions(**kwargs)


class TestEnvironment(unittest.TestCase):
    def test_headers_become_prefixed_variables(self):
        event = Event({'event': 'log', 'id': '42', 'X-Custom': 'a=b'}, 'payload')
        self.assertEqual(build_environment(event),
                         {'SSE_EVENT': 'log', 'SSE_ID': '42', 'SSE_X-CUSTOM': 'a=b'})

    def test_data_is_never_exported(self):
        self.assertEqual(build_environment(Event({}, 'secret')), {})

    def test_reply_is_exported(self):
        env = build_environment(Event({'reply': 'http://x/y'}, ''))
        self.assertEqual(env, {'SSE_REPLY': 'http://x/y'})


class TestFormatting(unittest.TestCase):
    def test_format_event_in_wire_shape(self):
        event = Event({'event': 'log', 'id': '1'}, 'a\nb')
        self.assertEqual(format_event(event), b'event: log\nid: 1\ndata: a\ndata: b\n\n')

    def test_formatted_event_parses_back(self):
        event = Event({'event': 'log', 'reply': 'http://x/y'}, 'one\ntwo')
        self.assertEqual(list(FrameParser().feed(format_event(event))), [event])

    def test_event_without_data_has_no_data_line(self):
        event = Event({'event': 'ping'})
        self.assertEqual(format_event(event), b'event: ping\n\n')
        self.assertEqual(list(FrameParser().feed(format_event(event))), [event])

    def test_empty_data_keeps_its_data_line(self):
        self.assertEqual(format_event(Event({'id': '2'}, '')), b'id: 2\ndata: \n\n')

    def test_describe(self):
        self.assertEqual(describe(Event({'event': 'tick', 'id': '9'}, 'abc')), 'tick:9 (3 byte)')
        self.assertEqual(describe(Event({}, '')), 'event:<none> (0 byte)')


class TestDispatcher(unittest.TestCase):
    def make(self, runner_output=b'ok', returncode=0, **kwargs):
        self.runner = mock.Mock(return_value=SubprocessResult(output=runner_output, returncode=returncode))
        self.poster = mock.Mock()
        self.out = io.BytesIO()
        return Dispatcher(options(**kwargs), runner=self.runner, poster=self.poster, out=self.out)

    def test_runs_command_with_environment_and_input(self):
        dispatcher = self.make(command=('handler', '--flag'), response_limit=123)
        with self.assertLogs('sse_pipe.dispatcher', level='INFO') as logs:
            dispatcher.dispatch(Event({'id': '1', 'event': 'log'}, 'héllo'))
        self.runner.assert_called_once_with(
            ('handler', '--flag'), {'SSE_ID': '1', 'SSE_EVENT': 'log'}, 'héllo'.encode('utf-8'), 123)
        self.assertEqual(self.out.getvalue(), b'')
        self.poster.post.assert_not_called()
        self.assertIn('EVENT log:1', logs.output[0])

    def test_echoes_without_command(self):
        dispatcher = self.make()
        dispatcher.dispatch(Event({'id': '1'}, 'x'))
        dispatcher.dispatch(Event({}, 'y'))
        self.assertEqual(self.out.getvalue(), b'id: 1\ndata: x\n\ndata: y\n\n')
        self.runner.assert_not_called()

    def test_reply_posts_command_output(self):
        dispatcher = self.make(command=('cat',))
        dispatcher.dispatch(Event({'reply': 'http://x/y'}, 'ok'))
        self.poster.post.assert_called_once_with('http://x/y', b'ok')

    def test_reply_is_empty_when_command_fails(self):
        dispatcher = self.make(runner_output=b'partial', returncode=2, command=('false',))
        dispatcher.dispatch(Event({'reply': 'http://x/y'}, ''))
        self.poster.post.assert_called_once_with('http://x/y', b'')

    def test_no_reply_without_command(self):
        dispatcher = self.make()
        dispatcher.dispatch(Event({'reply': 'http://x/y'}, 'data'))
        self.poster.post.assert_not_called()

    def test_reply_field_name_is_case_sensitive(self):
        dispatcher = self.make(command=('cat',))
        dispatcher.dispatch(Event({'Reply': 'http://x/y'}, 'ok'))
        self.poster.post.assert_not_called()

    def test_unlimited_by_default(self):
        dispatcher = self.make(command=('cat',))
        for _ in range(10):
            dispatcher.dispatch(Event({}, 'x'))
        self.assertEqual(dispatcher.delivered, 10)

    def test_limit_stops_after_last_event_and_its_reply(self):
        dispatcher = self.make(command=('cat',), limit=3)
        parser = FrameParser()
        stream = b''.join(b'id: %d\nreply: http://x/%d\ndata: e\n\n' % (i, i) for i in range(1, 5))
        with self.assertRaises(EventLimitReached) as cm:
            for event in parser.feed(stream):
                dispatcher.dispatch(event)
        self.assertEqual(cm.exception.exit_code, 0)
        self.assertEqual(self.runner.call_count, 3)
        self.assertEqual([c.args[0] for c in self.poster.post.call_args_list],
                         ['http://x/1', 'http://x/2', 'http://x/3'])


class TestReplyPoster(unittest.TestCase):
    def test_posts_with_empty_content_type(self):
        transport = mock.Mock()
        with self.assertLogs('sse_pipe.reply', level='INFO') as logs:
            ReplyPoster(transport).post('http://x/y', b'ok')
        transport.perform.assert_called_once_with('POST', 'http://x/y', {'Content-Type': ''}, b'ok')
        self.assertIn('REPLY http://x/y (2 byte)', logs.output[0])


if __name__ == '__main__':
    unittest.main()
