import typing

from behave import then, use_step_matcher, when

from solana_easy.layout import Deserializer, LayoutError, Serializer

# Use regular expressions
use_step_matcher("re")


@when(r"I serialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_serialize(context: typing.Any, input_type: str):
    ser = Serializer()

    try:
        if input_type == "bool":
            ser.bool(context.input)
        elif input_type == "u8":
            ser.u8(context.input)
        elif input_type == "u16":
            ser.u16(context.input)
        elif input_type == "u32":
            ser.u32(context.input)
        elif input_type == "u64":
            ser.u64(context.input)
        elif input_type == "i64":
            ser.i64(context.input)
        elif input_type == "string":
            ser.str(context.input)
        else:
            raise Exception("Unrecognized input type")
    except LayoutError as e:
        context.output = e
        return

    context.output = ser.output()


@when(r"I deserialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_deserialize(context: typing.Any, input_type: str):
    des = Deserializer(context.input)
    context.output = None

    try:
        if input_type == "bool":
            context.output = des.bool()
        elif input_type == "u8":
            context.output = des.u8()
        elif input_type == "u16":
            context.output = des.u16()
        elif input_type == "u32":
            context.output = des.u32()
        elif input_type == "u64":
            context.output = des.u64()
        elif input_type == "i64":
            context.output = des.i64()
        elif input_type == "string":
            context.output = des.str()
    except LayoutError as e:
        context.output = e

    # Catch all if it fails to be parsed
    if context.output is None:
        raise Exception("Unrecognized input type")


@then(r"the deserialization should fail")
def then_fail_deserialization(context: typing.Any):
    assert isinstance(context.output, LayoutError)


@then(r"the serialization should fail")
def then_fail_serialization(context: typing.Any):
    assert isinstance(context.output, LayoutError)
