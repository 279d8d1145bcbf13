"""Protobuf messages for the azookey suggestion service.

The classes are built at import time from a FileDescriptorProto that mirrors
azookey.proto, so no protoc step is needed to install the package.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from ..imetypes import Candidate, ComposedText

PROTO_PACKAGE = "azookey"
SERVICE_NAME = f"{PROTO_PACKAGE}.AzookeyService"

# The server narrows offsets to a signed byte.
OFFSET_MIN = -128
OFFSET_MAX = 127

_Field = descriptor_pb2.FieldDescriptorProto

# message name -> [(field name, number, type, repeated, message type)]
_MESSAGES = {
    "Suggestion": [
        ("text", 1, _Field.TYPE_STRING, False, None),
        ("subtext", 2, _Field.TYPE_STRING, False, None),
        ("corresponding_count", 3, _Field.TYPE_INT32, False, None),
    ],
    "ComposingText": [
        ("spell", 1, _Field.TYPE_STRING, False, None),
        ("suggestions", 2, _Field.TYPE_MESSAGE, True, "Suggestion"),
    ],
    "AppendTextRequest": [("text_to_append", 1, _Field.TYPE_STRING, False, None)],
    "AppendTextResponse": [("composing_text", 1, _Field.TYPE_MESSAGE, False, "ComposingText")],
    "RemoveTextRequest": [],
    "RemoveTextResponse": [("composing_text", 1, _Field.TYPE_MESSAGE, False, "ComposingText")],
    "MoveCursorRequest": [("offset", 1, _Field.TYPE_INT32, False, None)],
    "MoveCursorResponse": [("composing_text", 1, _Field.TYPE_MESSAGE, False, "ComposingText")],
    "ClearTextRequest": [],
    "ClearTextResponse": [],
    "ShrinkTextRequest": [("offset", 1, _Field.TYPE_INT32, False, None)],
    "ShrinkTextResponse": [("composing_text", 1, _Field.TYPE_MESSAGE, False, "ComposingText")],
}

RPC_NAMES = ["AppendText", "RemoveText", "MoveCursor", "ClearText", "ShrinkText"]


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name="azookey.proto", package=PROTO_PACKAGE, syntax="proto3")
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for field_name, number, field_type, repeated, type_name in fields:
            field = message.field.add(
                name=field_name,
                number=number,
                type=field_type,
                label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
                json_name=_json_name(field_name),
            )
            if type_name is not None:
                field.type_name = f".{PROTO_PACKAGE}.{type_name}"
    service = file_proto.service.add(name="AzookeyService")
    for rpc in RPC_NAMES:
        service.method.add(
            name=rpc,
            input_type=f".{PROTO_PACKAGE}.{rpc}Request",
            output_type=f".{PROTO_PACKAGE}.{rpc}Response",
        )
    return file_proto


def _json_name(field_name: str) -> str:
    first, *rest = field_name.split("_")
    return first + "".join(part.capitalize() for part in rest)


FILE_DESCRIPTOR = _file_descriptor()
_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(FILE_DESCRIPTOR.SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.{name}"))


Suggestion = _message_class("Suggestion")
ComposingText = _message_class("ComposingText")

AppendTextRequest = _message_class("AppendTextRequest")
AppendTextResponse = _message_class("AppendTextResponse")
RemoveTextRequest = _message_class("RemoveTextRequest")
RemoveTextResponse = _message_class("RemoveTextResponse")
MoveCursorRequest = _message_class("MoveCursorRequest")
MoveCursorResponse = _message_class("MoveCursorResponse")
ClearTextRequest = _message_class("ClearTextRequest")
ClearTextResponse = _message_class("ClearTextResponse")
ShrinkTextRequest = _message_class("ShrinkTextRequest")
ShrinkTextResponse = _message_class("ShrinkTextResponse")

# rpc name -> (request class, response class)
METHODS = {
    "AppendText": (AppendTextRequest, AppendTextResponse),
    "RemoveText": (RemoveTextRequest, RemoveTextResponse),
    "MoveCursor": (MoveCursorRequest, MoveCursorResponse),
    "ClearText": (ClearTextRequest, ClearTextResponse),
    "ShrinkText": (ShrinkTextRequest, ShrinkTextResponse),
}


def method_path(rpc: str) -> str:
    return f"/{SERVICE_NAME}/{rpc}"


def to_wire(composed: ComposedText):
    return ComposingText(
        spell=composed.spell,
        suggestions=[
            Suggestion(text=c.text, subtext=c.subtext, corresponding_count=c.corresponding_count) for c in composed.suggestions
        ],
    )


def from_wire(composing_text) -> ComposedText:
    return ComposedText(
        spell=composing_text.spell,
        suggestions=[
            Candidate(text=s.text, subtext=s.subtext, corresponding_count=s.corresponding_count)
            for s in composing_text.suggestions
        ],
    )


def check_offset(offset: int):
    # int32 on the wire, but anything outside a signed byte would be truncated by the server
    if not OFFSET_MIN <= offset <= OFFSET_MAX:
        raise ValueError(f"Cursor offset {offset} does not fit in a signed byte")
