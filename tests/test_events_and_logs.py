import asyncio
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from posledger.models.inventory import ChangeAction
from posledger.services.change_log import ChangeLogRecorder, diff_snapshots
from posledger.services.events import EventBroadcaster


def test_diff_snapshots_keeps_only_changed_fields():
    before = {"name": "Old", "stock": 5, "vendors": ["A"]}
    after = {"name": "New", "stock": 5, "vendors": ["A", "B"]}

    assert diff_snapshots(before, after) == {
        "name": {"old": "Old", "new": "New"},
        "vendors": {"old": ["A"], "new": ["A", "B"]},
    }
    assert diff_snapshots(before, dict(before)) == {}


def test_recorder_failure_is_absorbed():
    session = MagicMock()
    session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    result = ChangeLogRecorder(session).record(1, ChangeAction.UPDATE, {"stock": {"old": 1, "new": 0}})

    assert result is None
    session.rollback.assert_called_once()


def test_broadcaster_fans_out_to_subscribers():
    async def scenario():
        broadcaster = EventBroadcaster()
        broadcaster.open()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()

        broadcaster.publish("sale:created", {"id": 1})
        broadcaster.unsubscribe(second)
        broadcaster.publish("sale:created", {"id": 2})

        received = [first.get_nowait(), first.get_nowait()]
        assert [message.data["id"] for message in received] == [1, 2]
        assert second.qsize() == 1
        assert broadcaster.subscriber_count == 1
        broadcaster.close()
        assert not broadcaster.is_open

    asyncio.run(scenario())


def test_closed_broadcaster_drops_events():
    broadcaster = EventBroadcaster()

    broadcaster.publish("sale:created", {"id": 1})

    assert broadcaster.subscriber_count == 0


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
