"""
Unit tests for the message router.

The router is exercised directly with fake transports; ``deliver`` plays the
coordinator's part by handing each computed send to its transport.
"""

import pytest

from core.errors import MalformedMessageError, UnknownMessageTypeError
from core.router import decode_message, parse_message
from models import JoinRequest, Role


def deliver(result):
    for outbound in result.sends:
        outbound.transport.send(outbound.message)
    return result


def announce_source(router, transport, source_id):
    return deliver(router.route(transport, {"type": "announce-source", "sourceId": source_id}))


def announce_receiver(router, transport, receiver_id):
    return deliver(router.route(transport, {"type": "announce-receiver", "receiverId": receiver_id}))


class TestDecoding:

    def test_decode_text_frame(self):
        assert decode_message('{"type": "list-sources"}') == {"type": "list-sources"}

    def test_decode_bytes_frame(self):
        assert decode_message(b'{"type": "list-sources"}') == {"type": "list-sources"}

    @pytest.mark.parametrize("frame", ["not json", "[1, 2]", "42", b"\xff\xfe"])
    def test_decode_rejects_non_objects(self, frame):
        with pytest.raises(MalformedMessageError):
            decode_message(frame)

    def test_parse_known_type(self):
        message = parse_message({"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": {"sdp": "x"}})
        assert isinstance(message, JoinRequest)
        assert message.source_id == "S1"
        assert message.offer == {"sdp": "x"}

    def test_parse_missing_type(self):
        with pytest.raises(MalformedMessageError):
            parse_message({"sourceId": "S1"})

    def test_parse_unknown_type(self):
        with pytest.raises(UnknownMessageTypeError) as exc_info:
            parse_message({"type": "teleport"})
        assert exc_info.value.message_type == "teleport"

    def test_parse_empty_id_is_malformed(self):
        with pytest.raises(MalformedMessageError):
            parse_message({"type": "announce-source", "sourceId": ""})

    def test_parse_requires_offer_presence_but_not_shape(self):
        with pytest.raises(MalformedMessageError):
            parse_message({"type": "join-request", "sourceId": "S1", "receiverId": "R1"})
        message = parse_message({"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": None})
        assert message.offer is None


class TestLifecycleRouting:

    def test_announce_source_acks_and_notifies_receivers(self, router, directory, transport_factory):
        r1, r2, s1 = transport_factory("r1"), transport_factory("r2"), transport_factory("s1")
        announce_receiver(router, r1, "R1")
        announce_receiver(router, r2, "R2")

        result = announce_source(router, s1, "S1")

        assert s1.sent == [{"type": "source-registered", "sourceId": "S1"}]
        assert r1.of_type("source-online") == [{"type": "source-online", "sourceId": "S1"}]
        assert r2.of_type("source-online") == [{"type": "source-online", "sourceId": "S1"}]
        assert directory.list_live() == ["S1"]
        assert result.started == ["S1"]

    def test_announce_receiver_ack_lists_live_sources(self, router, transport_factory):
        announce_source(router, transport_factory("s1"), "S1")
        announce_source(router, transport_factory("s2"), "S2")
        r1 = transport_factory("r1")

        announce_receiver(router, r1, "R1")

        assert r1.sent == [{"type": "receiver-registered", "receiverId": "R1", "sources": ["S1", "S2"]}]

    def test_retire_source_notifies_receivers_and_unregisters(self, router, registry, directory, transport_factory):
        s1, r1 = transport_factory("s1"), transport_factory("r1")
        announce_source(router, s1, "S1")
        announce_receiver(router, r1, "R1")

        result = deliver(router.route(s1, {"type": "retire-source", "sourceId": "S1"}))

        assert r1.of_type("source-offline") == [{"type": "source-offline", "sourceId": "S1"}]
        assert directory.list_live() == []
        assert registry.lookup("S1") is None
        assert result.stopped == ["S1"]
        assert not s1.closed

    def test_retire_unknown_source_is_a_silent_miss(self, router, transport_factory):
        r1 = transport_factory("r1")
        announce_receiver(router, r1, "R1")
        r1.sent.clear()

        result = router.route(r1, {"type": "retire-source", "sourceId": "ghost"})

        assert result.sends == []
        assert result.stopped == []

    def test_reannounce_source_evicts_old_transport(self, router, registry, directory, transport_factory):
        old, new, r1 = transport_factory("old"), transport_factory("new"), transport_factory("r1")
        announce_source(router, old, "S1")
        announce_receiver(router, r1, "R1")

        result = announce_source(router, new, "S1")

        assert old.closed
        assert registry.lookup("S1").transport is new
        assert directory.list_live() == ["S1"]
        # Still the same broadcast session
        assert result.started == []

        r1.sent.clear()
        deliver(router.route(r1, {"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": "o"}))
        assert new.of_type("join-offer") == [{"type": "join-offer", "receiverId": "R1", "offer": "o"}]
        assert old.of_type("join-offer") == []

    def test_switching_identity_retires_previous_source(self, router, registry, directory, transport_factory):
        t, r1 = transport_factory("t"), transport_factory("r1")
        announce_receiver(router, r1, "R1")
        announce_source(router, t, "S1")

        result = announce_source(router, t, "S2")

        assert directory.list_live() == ["S2"]
        assert registry.lookup("S1") is None
        assert result.stopped == ["S1"]
        assert result.started == ["S2"]
        assert r1.of_type("source-offline") == [{"type": "source-offline", "sourceId": "S1"}]

    def test_source_reannouncing_as_receiver_leaves_directory(self, router, registry, directory, transport_factory):
        t = transport_factory("t")
        r = transport_factory("r")
        announce_receiver(router, r, "R1")
        announce_source(router, t, "X")

        result = announce_receiver(router, t, "X")

        assert directory.list_live() == []
        assert registry.lookup("X").role == Role.RECEIVER
        assert result.stopped == ["X"]
        assert t.sent[-1] == {"type": "receiver-registered", "receiverId": "X", "sources": []}
        assert t.of_type("source-offline") == []
        assert r.of_type("source-offline") == [{"type": "source-offline", "sourceId": "X"}]

    def test_release_of_source_matches_retire(self, router, registry, directory, transport_factory):
        s1, r1, r2 = transport_factory("s1"), transport_factory("r1"), transport_factory("r2")
        announce_source(router, s1, "S1")
        announce_receiver(router, r1, "R1")
        announce_receiver(router, r2, "R2")

        result = deliver(router.release(s1))

        for receiver in (r1, r2):
            assert receiver.of_type("source-offline") == [{"type": "source-offline", "sourceId": "S1"}]
        assert directory.list_live() == []
        assert registry.lookup("S1") is None
        assert result.stopped == ["S1"]

    def test_release_of_evicted_transport_is_a_noop(self, router, directory, transport_factory):
        old, new, r1 = transport_factory("old"), transport_factory("new"), transport_factory("r1")
        announce_source(router, old, "S1")
        announce_source(router, new, "S1")
        announce_receiver(router, r1, "R1")

        result = router.release(old)

        assert result.sends == []
        assert directory.list_live() == ["S1"]

    def test_release_of_receiver_sends_nothing(self, router, registry, transport_factory):
        s1, r1 = transport_factory("s1"), transport_factory("r1")
        announce_source(router, s1, "S1")
        announce_receiver(router, r1, "R1")

        result = router.release(r1)

        assert result.sends == []
        assert registry.lookup("R1") is None

    def test_list_sources(self, router, transport_factory):
        announce_source(router, transport_factory("s1"), "S1")
        t = transport_factory("anon")

        deliver(router.route(t, {"type": "list-sources"}))

        assert t.sent == [{"type": "source-list", "sources": ["S1"]}]


class TestNegotiationRouting:

    @pytest.fixture
    def session(self, router, transport_factory):
        s1, r1 = transport_factory("s1"), transport_factory("r1")
        announce_source(router, s1, "S1")
        announce_receiver(router, r1, "R1")
        s1.sent.clear()
        r1.sent.clear()
        return s1, r1

    def test_join_request_reaches_only_the_source(self, router, session, transport_factory):
        s1, r1 = session
        bystander = transport_factory("r2")
        announce_receiver(router, bystander, "R2")
        bystander.sent.clear()
        offer = {"type": "offer", "sdp": "v=0\r\n"}

        result = deliver(router.route(r1, {"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": offer}))

        assert len(result.sends) == 1
        assert s1.sent == [{"type": "join-offer", "receiverId": "R1", "offer": offer}]
        assert r1.sent == []
        assert bystander.sent == []

    def test_duplicate_join_request_is_forwarded_again(self, router, session):
        s1, r1 = session
        message = {"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": "o"}

        deliver(router.route(r1, message))
        deliver(router.route(r1, message))

        assert len(s1.of_type("join-offer")) == 2

    def test_join_request_for_missing_source_is_dropped(self, router, session):
        s1, r1 = session

        result = router.route(r1, {"type": "join-request", "sourceId": "nope", "receiverId": "R1", "offer": "o"})

        assert result.sends == []

    def test_join_request_after_retire_is_dropped(self, router, session):
        s1, r1 = session
        deliver(router.route(s1, {"type": "retire-source", "sourceId": "S1"}))
        r1.sent.clear()

        result = router.route(r1, {"type": "join-request", "sourceId": "S1", "receiverId": "R1", "offer": "o"})

        assert result.sends == []
        assert s1.of_type("join-offer") == []

    def test_join_request_to_a_receiver_id_is_dropped(self, router, session, transport_factory):
        s1, r1 = session

        result = router.route(r1, {"type": "join-request", "sourceId": "R1", "receiverId": "R1", "offer": "o"})

        assert result.sends == []

    def test_join_answer_reaches_only_the_receiver(self, router, session):
        s1, r1 = session
        answer = {"type": "answer", "sdp": "v=0\r\n"}

        result = deliver(router.route(s1, {"type": "join-answer", "sourceId": "S1", "receiverId": "R1", "answer": answer}))

        assert len(result.sends) == 1
        assert r1.sent == [{"type": "join-answer", "sourceId": "S1", "answer": answer}]
        assert s1.sent == []

    def test_join_answer_for_missing_receiver_is_dropped(self, router, session):
        s1, r1 = session

        result = router.route(s1, {"type": "join-answer", "sourceId": "S1", "receiverId": "gone", "answer": "a"})

        assert result.sends == []

    def test_directed_candidate_forwarded_verbatim(self, router, session):
        s1, r1 = session
        message = {
            "type": "ice-candidate",
            "fromId": "R1",
            "targetId": "S1",
            "candidate": {"candidate": "candidate:1 1 udp 2122260223 10.0.0.2 54400 typ host", "sdpMLineIndex": 0},
            "targetType": "broadcaster",
        }

        deliver(router.route(r1, message))

        assert s1.sent == [message]
        assert r1.sent == []

    def test_directed_candidate_without_target_is_dropped(self, router, session):
        s1, r1 = session

        result = router.route(r1, {"type": "ice-candidate", "fromId": "R1", "candidate": "c"})

        assert result.sends == []

    def test_directed_candidate_never_returns_to_sender(self, router, session):
        s1, r1 = session

        result = router.route(r1, {"type": "ice-candidate", "fromId": "R1", "targetId": "R1", "candidate": "c"})

        assert result.sends == []

    def test_directed_candidate_to_unknown_target_is_dropped(self, router, session):
        s1, r1 = session

        result = router.route(r1, {"type": "ice-candidate", "fromId": "R1", "targetId": "ghost", "candidate": "c"})

        assert result.sends == []

    def test_flood_candidate_goes_to_everyone_but_sender(self, flood_router, transport_factory):
        s1, r1, r2 = transport_factory("s1"), transport_factory("r1"), transport_factory("r2")
        announce_source(flood_router, s1, "S1")
        announce_receiver(flood_router, r1, "R1")
        announce_receiver(flood_router, r2, "R2")
        message = {"type": "ice-candidate", "fromId": "R1", "candidate": "c"}

        result = deliver(flood_router.route(r1, message))

        assert {outbound.transport for outbound in result.sends} == {s1, r2}
        assert s1.of_type("ice-candidate") == [message]
        assert r2.of_type("ice-candidate") == [message]
        assert r1.of_type("ice-candidate") == []


class TestMalformedInput:

    @pytest.mark.parametrize("message", [
        {"sourceId": "S1"},
        {"type": 7},
        {"type": "announce-source"},
        {"type": "announce-source", "sourceId": 12},
        {"type": "announce-receiver", "receiverId": ""},
        {"type": "join-request", "sourceId": "S1", "offer": "o"},
        {"type": "join-answer", "receiverId": "R1", "answer": "a"},
        {"type": "ice-candidate", "targetId": "S1", "candidate": "c"},
        {"type": "teleport", "sourceId": "S1"},
    ])
    def test_bad_messages_are_dropped_without_mutation(self, router, registry, directory, transport_factory, message):
        sender = transport_factory("sender")

        result = router.route(sender, message)

        assert result.sends == []
        assert len(registry) == 0
        assert directory.list_live() == []
        assert not sender.closed
