import typing

from behave import given, then, use_step_matcher

# Use regular expressions
use_step_matcher("re")

INTEGER_TYPES = ("u8", "u16", "u32", "u64", "i64")


@given(r'string "(?P<input_value>[^"]*)"')
def given_string_input(context: typing.Any, input_value: str):
    context.input = input_value


@given(r'(?P<input_type>[a-zA-Z0-9]+) (?P<input_value>[^\s"]+)')
def given_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_value(input_type, input_value)


@then(r'the result should be string "(?P<expected_value>[^"]*)"')
def then_result_string(context: typing.Any, expected_value: str):
    assert context.output == expected_value, (
        "Expected " + expected_value + " but got " + str(context.output)
    )


@then(r'the result should be (?P<expected_type>[a-zA-Z0-9]+) (?P<expected_value>[^\s"]+)')
def then_result(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_value(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_val) + " but got " + str(context.output)
    )


def parse_value(input_type: str, input_value: str) -> typing.Any:
    if input_type == "bool":
        return input_value == "true"
    if input_type in INTEGER_TYPES:
        return int(input_value)
    if input_type == "bytes":
        return parse_hex(input_value)
    raise Exception("Unrecognized input type")


def parse_hex(input_value: str) -> bytes:
    if input_value.startswith("0x"):
        input_value = input_value[2:]
    return bytes.fromhex(input_value)
