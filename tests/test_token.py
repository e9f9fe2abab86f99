"""Tests for the verification token codec."""

import pytest
from nacl.secret import SecretBox
from nacl.utils import random as random_bytes

from monarch.errors import CryptoError
from monarch.token import TokenCodec, is_identity


USER_IDS = ["U024BE7LH", "W012A3CDE", "U01", "UABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"]


class TestRoundTrip:

    @pytest.mark.parametrize("user_id", USER_IDS)
    def test_decode_recovers_encoded_identity(self, codec, user_id):
        assert codec.decode(codec.encode(user_id)) == user_id

    def test_tokens_differ_but_decode_the_same(self, codec):
        first = codec.encode("U024BE7LH")
        second = codec.encode("U024BE7LH")

        assert first != second
        assert codec.decode(first) == codec.decode(second) == "U024BE7LH"

    def test_token_does_not_contain_identity(self, codec):
        token = codec.encode("U024BE7LH")

        assert b"U024BE7LH" not in token

    def test_identity_format(self):
        assert is_identity("U024BE7LH")
        assert is_identity("W012A3CDE")
        assert not is_identity("u024be7lh")
        assert not is_identity("740971495521779795")
        assert not is_identity("U")

    def test_encode_rejects_malformed_identity(self, codec):
        with pytest.raises(ValueError):
            codec.encode("not a user")
        with pytest.raises(ValueError):
            codec.encode("")


class TestTamperRejection:

    def test_every_single_byte_mutation_fails(self, codec):
        token = codec.encode("U024BE7LH")

        for i in range(len(token)):
            for flip in (0x01, 0x80, 0xFF):
                mutated = bytearray(token)
                mutated[i] ^= flip
                with pytest.raises(CryptoError):
                    codec.decode(bytes(mutated))

    def test_truncated_token_fails(self, codec):
        token = codec.encode("U024BE7LH")

        with pytest.raises(CryptoError):
            codec.decode(token[:-1])
        with pytest.raises(CryptoError):
            codec.decode(token[:10])
        with pytest.raises(CryptoError):
            codec.decode(b"")

    def test_wrong_key_fails(self, codec):
        other = TokenCodec(random_bytes(TokenCodec.KEY_SIZE))
        token = codec.encode("U024BE7LH")

        with pytest.raises(CryptoError):
            other.decode(token)

    def test_authentic_token_with_non_identity_plaintext_fails(self):
        key = random_bytes(TokenCodec.KEY_SIZE)
        codec = TokenCodec(key)
        box = SecretBox(key)

        with pytest.raises(CryptoError):
            codec.decode(bytes(box.encrypt(b"740971495521779795")))
        with pytest.raises(CryptoError):
            codec.decode(bytes(box.encrypt(b"\xff\xfe")))


class TestKeys:

    def test_key_size_is_enforced(self):
        with pytest.raises(ValueError):
            TokenCodec(b"short")

    def test_same_passphrase_derives_same_key(self):
        first = TokenCodec.from_passphrase("hunter2 but longer")
        second = TokenCodec.from_passphrase("hunter2 but longer")

        assert second.decode(first.encode("U024BE7LH")) == "U024BE7LH"

    def test_different_passphrase_cannot_decode(self):
        first = TokenCodec.from_passphrase("passphrase one")
        second = TokenCodec.from_passphrase("passphrase two")

        with pytest.raises(CryptoError):
            second.decode(first.encode("U024BE7LH"))

    def test_empty_passphrase_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec.from_passphrase("")
