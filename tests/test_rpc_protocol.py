import json

import pytest

from core.errors import BadRequestError
from core.rpc_protocol import RpcRequest, decode_response, encode_request
from core.subject import parse_subject, rpc_request_subject, rpc_response_subject


def test_encode_request_carries_method_args_and_id():
    raw = encode_request(RpcRequest(method="sign", args=["a", 1], id="task-1-0.5"))
    assert json.loads(raw) == {"method": "sign", "args": ["a", 1], "id": "task-1-0.5"}


def test_decode_response_accepts_bytes_str_and_dict():
    for raw in (b'{"id": "t", "value": 3}', '{"id": "t", "value": 3}', {"id": "t", "value": 3}):
        response = decode_response(raw)
        assert response.id == "t"
        assert response.value == 3


def test_decode_response_defaults_missing_value_to_none():
    assert decode_response({"id": "t"}).value is None


@pytest.mark.parametrize("raw", [b"not json", b'{"value": 1}', b'{"id": ""}'])
def test_decode_response_rejects_malformed_payloads(raw):
    with pytest.raises(BadRequestError):
        decode_response(raw)


def test_rpc_subjects_are_scoped_by_context():
    assert rpc_request_subject("signer") == "jsrpc.v1.signer.cmd.request"
    assert rpc_response_subject("signer", "v2") == "jsrpc.v2.signer.evt.response"

    parts = parse_subject("jsrpc.v1.signer.evt.response")
    assert parts is not None
    assert (parts.context, parts.category, parts.suffix) == ("signer", "evt", "response")
    assert parse_subject("other.v1.signer.evt.response") is None
