import uuid

import pytest

from georise.schemas.analysis import TriggerFailedError, normalize_trigger_response

RUN_ID = uuid.uuid4()


def test_top_level_run_id():
    result = normalize_trigger_response({"success": True, "runId": str(RUN_ID), "score": 30, "mentions": 6})
    assert result.run_id == RUN_ID
    assert result.score == 30
    assert result.mentions == 6


def test_nested_data_envelope():
    result = normalize_trigger_response({"data": {"runId": str(RUN_ID), "totalQueries": 20}})
    assert result.run_id == RUN_ID
    assert result.total_queries == 20


def test_nested_run_id_wins():
    other = uuid.uuid4()
    result = normalize_trigger_response({"runId": str(other), "data": {"runId": str(RUN_ID)}})
    assert result.run_id == RUN_ID


def test_error_field_raises():
    with pytest.raises(TriggerFailedError, match="boom"):
        normalize_trigger_response({"error": "boom"})


def test_success_false_raises():
    with pytest.raises(TriggerFailedError):
        normalize_trigger_response({"success": False, "runId": str(RUN_ID)})


def test_missing_run_id_raises():
    with pytest.raises(TriggerFailedError):
        normalize_trigger_response({"success": True, "data": {}})


def test_malformed_run_id_raises():
    with pytest.raises(TriggerFailedError):
        normalize_trigger_response({"runId": "not-a-uuid"})
