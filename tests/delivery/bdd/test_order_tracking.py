"""BDD tests for live order tracking."""

import pytest
from delivery.backend.port import GeoPoint, OrderStatusUpdate
from delivery.tracking.progress import format_distance
from delivery.tracking.synchronizer import LiveOrderTracker, MergePolicy
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/order_tracking.feature")


@pytest.fixture()
def tracker(backend, run):
    tracker = LiveOrderTracker(backend, merge_policy=MergePolicy.OVERWRITE)
    yield tracker
    run(tracker.stop())


@pytest.fixture()
def writer(backend):
    return LiveOrderTracker(backend)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an order "{order_id}" is being prepared for delivery to {lat:g}, {lng:g}'))
def order_being_prepared(backend, order_id, lat, lng):
    confirmed = OrderStatusUpdate.new(order_id, "confirmed", "Restaurant accepted")
    backend.seed_order(order_id, status="preparing", destination=GeoPoint(lat=lat, lng=lng), history=[confirmed])


@given(parsers.cfparse('the customer is tracking "{order_id}"'))
@when(parsers.cfparse('the customer starts tracking "{order_id}"'))
def start_tracking(tracker, run, settle, order_id):
    run(tracker.start(order_id))
    run(tracker.wait_loaded())
    settle()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the restaurant reports "{status}" with "{message}"'))
@when(parsers.cfparse('the courier reports "{status}" with "{message}"'))
def report_status(writer, run, settle, outcome, status, message):
    outcome["result"] = run(writer.submit_status_update("ord-1", status, message))
    settle()


@when(parsers.cfparse('the restaurant reports "{status}" for "{order_id}"'))
def report_status_for(writer, run, settle, outcome, status, order_id):
    outcome["result"] = run(writer.submit_status_update(order_id, status, ""))
    settle()


@when(parsers.cfparse('courier "{driver_id}" reports position {lat:g}, {lng:g}'))
def report_position(writer, run, settle, outcome, driver_id, lat, lng):
    outcome["result"] = run(writer.submit_courier_location("ord-1", driver_id, lat, lng))
    settle()


@when("the backend recovers and pending history is retried")
def retry_pending(backend, writer, run, settle):
    backend.configure()
    run(writer.retry_pending_history())
    settle()


@when("the customer stops tracking")
def stop_tracking(tracker, run):
    run(tracker.stop())


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(tracker, status):
    assert tracker.projection.status == status


@then(parsers.cfparse('the history shows "{statuses}"'))
def history_shows(tracker, statuses):
    expected = [status.strip() for status in statuses.split(",")]
    assert [entry.status for entry in tracker.projection.history] == expected


@then(parsers.cfparse("the delivery progress is {percent:g} percent"))
def progress_is(tracker, percent):
    assert tracker.current_progress() == pytest.approx(percent, abs=0.01)


@then(parsers.cfparse("the courier is shown at {lat:g}, {lng:g}"))
def courier_shown_at(tracker, lat, lng):
    location = tracker.projection.courier_location
    assert (location.lat, location.lng) == pytest.approx((lat, lng))


@then(parsers.cfparse('the courier is "{label}" away'))
def courier_distance(tracker, label):
    assert format_distance(tracker.estimated_distance()) == label


@then(parsers.cfparse('the backend holds {count:d} position for "{order_id}"'))
def positions_held(backend, count, order_id):
    assert len([key for key in backend.courier_locations if key[1] == order_id]) == count


@then("the update fails")
def update_fails(outcome):
    assert outcome["result"].success is False
    assert outcome["result"].partial is False


@then("the update fails partway")
def update_fails_partway(outcome):
    assert outcome["result"].success is False
    assert outcome["result"].partial is True


@then(
    parsers.re(r'the backend history for "(?P<order_id>[^"]+)" has (?P<count>\d+) entr(?:y|ies)'),
    converters={"count": int},
)
def backend_history_count(backend, order_id, count):
    assert len(backend.history_for(order_id)) == count


@then(parsers.cfparse('the tracked order is "{order_id}"'))
def tracked_order_is(tracker, order_id):
    assert tracker.projection.order_id == order_id


@then("nothing is being tracked")
def nothing_tracked(tracker):
    assert tracker.projection is None
    assert tracker.active is False


@then("no channels are open")
def no_channels(backend):
    assert backend.feed.active_channels == []
