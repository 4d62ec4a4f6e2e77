import io
import json

import pytest

from c4id.errors import BadCharError, BadLengthError, NilIDError
from c4id.ident import (
    ID,
    MAX_ID,
    NIL_ID,
    VOID_ID,
    Digest,
    Encoder,
    identify,
    identify_bytes,
    parse,
)

EMPTY_ID = "c459dsjfscH38cYeXXYogktxf4Cd9ibshE3BHUo6a58hBXmRQdZrAkZzsWcbWtDg5oQstpDuni4Hirj75GEmTc1sFT"
ALL_FF = "c467rpwLCuS5DGA8KGZXKsVQ7dnPb9goRLoKfgGbLfQg9WoLUgNY77E2jT11fem3coV9nAkguBACzrU1iyZM4B8roQ"
ALL_00 = "c41111111111111111111111111111111111111111111111111111111111111111111111111111111111111111"
ASSET_TEXT = "This is a pretend asset file, for testing asset id generation.\n"
ASSET_ID = "c43ucjRutKqZSCrW43QGU1uwRZTGoVD7A7kPHKQ1z4X1Ge8mhW4Q1gk48Ld8VFpprQBfUC8JNvHYVgq453hCFrgf9D"
FOO_ID = "c45xZeXwMSpqXjpDumcHMA6mhoAmGHkUo7r9WmN2UgSEQzj9KjgseaQdkEJ11fGb5S1WEENcV3q8RFWwEeVpC7Fjk2"

TEST_VECTORS = ["alfa", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel", "india"]
TEST_VECTOR_IDS = [
    "c43zYcLni5LF9rR4Lg4B8h3Jp8SBwjcnyyeh4bc6gTPHndKuKdjUWx1kJPYhZxYt3zV6tQXpDs2shPsPYjgG81wZM1",
    "c42jd8KUQG9DKppN1qt5aWS3PAmdPmNutXyVTb8H123FcuU3shPxpUXsVdcouSALZ4PaDvMYzQSMYCWkb6rop9zhDa",
    "c44erLietE8C1iKmQ3y4ENqA9g82Exdkoxox3KEHops2ux5MTsuMjfbFRvUPsPdi9Pxc3C2MRvLxWT8eFw5XKbRQGw",
    "c42Sv2Wi2Qo8AKbJKnUP6YTSdz8pt9aDaf2Ltx44HF1UDdXANM8Ltk6qEzpncvmVbw6FZxgBumw9Eo2jtGyaQ5gDSC",
    "c41bviGCyTM2stoMYVTVKgBkfC6SitoLRFinp77BcmN9awdaeC9cxPy4zyFQBhmTvRzChawbECK1KBRnw3KnagA5be",
    "c427CsZdfUAHyQBS3hxDFrL9NqgKeRuKkuSkxuYTm26XG7AKAWCjViDuMhHaMmQBkvuHnsxojetbQU1DdxHjzyQw8r",
    "c41yLiwAPdsjiBAAw8AFwQGG3cAWnNbDio21NtHE8yD1Fh5irRE4FsccZvm1WdJ4FNHtR1kt5kev7wERsgYomaQbfs",
    "c44nNyaFuVbt5MCfo2PYWHpwMkBpYTbt14C6TuoLCYH5RLvAFLngER3nqHfXC2GuttcoDxGBi3pY1j3pUF2W3rZD8N",
    "c41nJ6CvPN7m7UkUA3oS2yjXYNSZ7WayxEQXWPae6wFkWwW8WChQWTu61bSeuCERu78BDK1LUEny1qHZnye3oU7DtY",
]

APPEND_ORDER = [
    (bytes(63) + bytes([58]), "c41111111111111111111111111111111111111111111111111111111111111111111111111111111111111121"),
    (bytes(62) + bytes([0x0D, 0x24]), "c41111111111111111111111111111111111111111111111111111111111111111111111111111111111111211"),
    (bytes(61) + bytes([2, 0xFA, 0x28]), "c41111111111111111111111111111111111111111111111111111111111111111111111111111111111112111"),
    (bytes(61) + bytes([0xAC, 0xAD, 0x10]), "c41111111111111111111111111111111111111111111111111111111111111111111111111111111111121111"),
]


def test_encoding_empty_stream():
    assert str(identify(io.BytesIO(b""))) == EMPTY_ID


def test_nil_id_constant():
    assert identify_bytes(b"") == NIL_ID
    assert parse(EMPTY_ID) == NIL_ID


def test_void_and_max_constants():
    assert Digest(bytes(64)).id() == VOID_ID
    assert Digest(b"\xff" * 64).id() == MAX_ID
    assert parse(ALL_00) == VOID_ID
    assert parse(ALL_FF) == MAX_ID


def test_encoder_identifies_asset():
    encoder = Encoder()
    assert encoder.write(ASSET_TEXT.encode()) == len(ASSET_TEXT)
    ident = encoder.id()
    assert str(ident) == ASSET_ID
    # Rendering must not alter the ID.
    assert str(ident) == ASSET_ID


def test_encoder_reset():
    reused = Encoder()
    for i in range(10):
        text = str(i).encode()
        fresh = Encoder()
        reused.write(text)
        fresh.write(text)
        assert str(reused.id()) == str(fresh.id())
        reused.reset()


def test_encoder_digest_matches_id():
    encoder = Encoder()
    encoder.write(b"foo")
    assert encoder.digest().id() == encoder.id()
    assert str(encoder.id()) == FOO_ID


def test_all_ff():
    ident = Digest(b"\xff" * 64).id()
    assert str(ident) == ALL_FF
    assert parse(ALL_FF).digest() == b"\xff" * 64


def test_all_00():
    ident = ID(int.from_bytes(bytes(64), "big"))
    assert str(ident) == ALL_00
    assert parse(ALL_00).digest() == bytes(64)


@pytest.mark.parametrize("data, expected", APPEND_ORDER)
def test_append_order(data, expected):
    ident = ID(int.from_bytes(data, "big"))
    assert str(ident) == expected
    assert parse(expected).digest() == data


def test_parse_valid():
    assert parse(ASSET_ID).cmp(identify(io.StringIO(ASSET_TEXT))) == 0


@pytest.mark.parametrize(
    "text, error, message",
    [
        ("c430cjRutKqZSCrW43QGU1uwRZTGoVD7A7kPHKQ1z4X1Ge8mhW4Q1gk48Ld8VFpprQBfUC8JNvHYVgq453hCFrgf9D",
         BadCharError, "non c4 id character at position 3"),
        ("", BadLengthError, "c4 ids must be 90 characters long, input length 0"),
        ("c430cjRutKqZSCrW43QGU1uwRZTGoVD7A7kPHKQ1z4X1Ge8mhW4Q1gk48Ld8VFpprQBfUC8JNvHYVgq453hCFrgf9",
         BadLengthError, "c4 ids must be 90 characters long, input length 89"),
    ],
)
def test_parse_errors(text, error, message):
    with pytest.raises(error) as info:
        parse(text)
    assert str(info.value) == message


def test_id_less():
    id1 = identify_bytes(b"1")
    id2 = identify_bytes(b"2")
    assert id1.less(id2) is False
    assert id2.less(id1) is True


def test_id_cmp():
    id1 = identify_bytes(b"1")
    id2 = identify_bytes(b"2")
    assert id1.cmp(id2) == 1
    assert id2.cmp(id1) == -1
    assert id1.cmp(id1) == 0


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("Test string", "Test string", 0),
        ("Test string A", "Test string B", -1),
        ("Test string B", "Test string A", 1),
    ],
)
def test_compare_ids(a, b, expected):
    assert identify(a).cmp(identify(b)) == expected


def test_compare_with_none():
    assert identify("Test string").cmp(None) == -1
    assert identify("Test string").less(None) is True


def test_ordering_operators_follow_cmp():
    id1 = identify_bytes(b"1")
    id2 = identify_bytes(b"2")
    assert sorted([id1, id2]) == [id2, id1]
    assert id2 < id1


def test_bytes_to_id():
    digest = Digest(bytes(63) + bytes([58]))
    assert str(digest.id()) == APPEND_ORDER[0][1]


@pytest.mark.parametrize("index, text", list(enumerate(TEST_VECTORS)))
def test_identification(index, text):
    assert str(identify(io.BytesIO(text.encode()))) == TEST_VECTOR_IDS[index]


@pytest.mark.parametrize("index, text", list(enumerate(TEST_VECTORS)))
def test_parse_matches_identify(index, text):
    assert parse(TEST_VECTOR_IDS[index]) == identify(text)


def test_digest_sum_pairs():
    digests = [identify(text).digest() for text in TEST_VECTORS]
    for left, right in zip(digests[0::2], digests[1::2]):
        left_copy, right_copy = bytes(left), bytes(right)
        total = left.sum(right)
        low, high = sorted([bytes(left), bytes(right)])
        assert total == identify_bytes(low + high).digest()
        assert right.sum(left) == total
        assert bytes(left) == left_copy
        assert bytes(right) == right_copy


def test_digest_sum_identical_returns_same():
    digest = identify("alfa").digest()
    assert digest.sum(digest) == digest


@pytest.mark.parametrize("data, text", APPEND_ORDER)
def test_parse_digest_bytes(data, text):
    assert parse(text).digest() == data


def test_digest_from_bytes_pads():
    assert Digest.from_bytes(bytes([58])) == bytes(63) + bytes([58])


def test_digest_rejects_wrong_length():
    with pytest.raises(ValueError):
        Digest(b"short")
    with pytest.raises(ValueError):
        Digest.from_bytes(bytes(65))


def test_identify_chunked_reader():
    class Chunks:
        def __init__(self):
            self.parts = [b"f", b"oo"]

        def read(self, size=-1):
            return self.parts.pop(0) if self.parts else b""

    assert str(identify(Chunks())) == FOO_ID


def test_identify_read_failure_propagates():
    class Failing:
        def read(self, size=-1):
            raise OSError("read failed")

    with pytest.raises(OSError):
        identify(Failing())


def test_marshal_json():
    record = {"name": "Test", "id": json.loads(NIL_ID.to_json())}
    assert json.dumps(record, separators=(",", ":")) == (
        '{"name":"Test","id":"' + EMPTY_ID + '"}'
    )
    assert ID(0).to_json() == '""'


def test_unmarshal_json():
    assert ID.from_json('"' + EMPTY_ID + '"') == NIL_ID
    assert ID.from_json("null") is None
    assert ID.from_json('""') == VOID_ID


def test_unmarshal_json_bad_id():
    with pytest.raises(BadLengthError):
        ID.from_json('"c4abc"')


def test_binary_round_trip():
    ident = identify("foo")
    data = ident.to_bytes()
    assert len(data) == 64
    assert ID.from_bytes(data) == ident


def test_from_bytes_too_long():
    with pytest.raises(NilIDError):
        ID.from_bytes(bytes(65))


def test_id_rejects_negative():
    with pytest.raises(ValueError):
        ID(-1)


def test_oversized_value_has_no_digest():
    ident = parse("c4" + "z" * 88)
    with pytest.raises(NilIDError):
        ident.digest()


def test_string_round_trip():
    ident = identify("bravo")
    assert parse(str(ident)) == ident
    assert hash(parse(str(ident))) == hash(ident)