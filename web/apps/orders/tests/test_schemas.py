import pytest
from pydantic import ValidationError as PydanticValidationError

from apps.orders.domain import OrderSnapshot
from apps.orders.drafts import HostingOption
from apps.orders.errors import InvalidCoordinate, UnknownOrderId, ValidationError, error_for_code
from apps.orders.schemas import CreateOrderDTO


def test_dto_accepts_camel_and_snake_case(order_payload):
    dto = CreateOrderDTO.model_validate(order_payload)
    assert dto.linkedin_url == "https://linkedin.com/in/ada"
    assert dto.hosting_option is HostingOption.PROVIDER_HOSTED
    assert dto.color_codes == ["#ffffff", "#cfd2d6"]

    snake = CreateOrderDTO.model_validate({"name": "A", "email": "a@b.c", "color_codes": ["#ABCDEF"], "hosting_option": "self_hosted"})
    assert snake.color_codes == ["#abcdef"]


def test_dto_rejects_short_hex():
    with pytest.raises(PydanticValidationError):
        CreateOrderDTO.model_validate({"colorCodes": ["#fff"]})


def test_snapshot_round_trip_through_payload(order_payload):
    snap = CreateOrderDTO.model_validate(order_payload).to_domain()
    payload = CreateOrderDTO.from_domain(snap).to_payload()
    assert payload["contactNumber"] == order_payload["contactNumber"]
    assert CreateOrderDTO.model_validate(payload).to_domain() == snap


def test_snapshot_to_draft_keeps_structure_without_attachments(order_payload):
    draft = CreateOrderDTO.model_validate(order_payload).to_domain().to_draft()
    assert draft.can_submit
    assert [s.title for s in draft.sections] == ["Work", "Talks"]
    assert list(draft.pending_uploads()) == []
    assert OrderSnapshot.from_draft(draft).sections[0].files[0].topic == "engine"


def test_error_for_code():
    assert isinstance(error_for_code("UNKNOWN_ORDER_ID"), UnknownOrderId)
    assert isinstance(error_for_code("INVALID_COORDINATE", "bad"), InvalidCoordinate)
    err = error_for_code("SOMETHING_NEW")
    assert type(err) is ValidationError
    assert err.message == "SOMETHING_NEW"


def test_dto_null_contact_is_blank():
    dto = CreateOrderDTO.model_validate({"name": None, "email": None})
    assert (dto.name, dto.email) == ("", "")
    assert dto.has_contact is False
