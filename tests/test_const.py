from statushub.const import USER_TOKEN_PREFIX, ErrorCodes, token_key


def test_success_is_zero():
    assert ErrorCodes(0) is ErrorCodes.SUCCESS


def test_token_and_uid_codes_match_source():
    assert ErrorCodes(1010) is ErrorCodes.TOKEN_INVALID
    assert ErrorCodes(1011) is ErrorCodes.UID_INVALID


def test_error_codes_round_trip_unique_and_ordered():
    members = list(ErrorCodes)
    values = [code.value for code in members]
    assert [ErrorCodes(value) for value in values] == members
    assert len(set(values)) == len(values)
    assert values == sorted(values)


def test_token_key_uses_prefix():
    assert token_key(42) == "utoken_42"


def test_token_key_accepts_string_uid():
    assert token_key("7") == USER_TOKEN_PREFIX + "7"