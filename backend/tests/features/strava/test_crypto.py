"""
Tests for TokenCipher.
"""

from streaksync.features.strava.crypto import SealedToken, TokenCipher

KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


class TestTokenCipher:
    """Tests for AES-256-GCM token encryption."""

    def test_round_trip(self):
        cipher = TokenCipher(KEY)
        encoded = cipher.encrypt("a1b2c3")

        assert encoded != "a1b2c3"
        assert TokenCipher.looks_encoded(encoded)
        assert cipher.decrypt(encoded) == "a1b2c3"

    def test_format_is_iv_tag_ciphertext(self):
        iv, tag, ciphertext = TokenCipher(KEY).encrypt("token").split(":")
        assert len(iv) == 32
        assert len(tag) == 32
        assert len(ciphertext) == len("token") * 2

    def test_random_iv(self):
        cipher = TokenCipher(KEY)
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_encrypt_is_idempotent(self):
        cipher = TokenCipher(KEY)
        encoded = cipher.encrypt("token")
        assert cipher.encrypt(encoded) == encoded

    def test_no_key_passthrough(self):
        cipher = TokenCipher(None)
        assert cipher.enabled is False
        assert cipher.encrypt("plain") == "plain"
        assert cipher.decrypt("plain") == "plain"

    def test_invalid_key_disables(self):
        assert TokenCipher("abc").enabled is False
        assert TokenCipher("zz" * 32).enabled is False

    def test_plaintext_decrypts_to_itself(self):
        """Legacy rows written before encryption was enabled stay readable."""
        assert TokenCipher(KEY).decrypt("legacy-plain-token") == "legacy-plain-token"

    def test_tampered_value_is_returned_unchanged(self):
        cipher = TokenCipher(KEY)
        iv, tag, ciphertext = cipher.encrypt("token").split(":")
        flipped = "0" if tag[0] != "0" else "1"
        tampered = f"{iv}:{flipped}{tag[1:]}:{ciphertext}"
        assert cipher.decrypt(tampered) == tampered

    def test_wrong_key_is_returned_unchanged(self):
        encoded = TokenCipher(KEY).encrypt("token")
        other = TokenCipher("ff" * 32)
        assert other.decrypt(encoded) == encoded


class TestSealedToken:
    """Tests for the tagged seal/open helpers."""

    def test_seal_marks_encrypted(self):
        cipher = TokenCipher(KEY)
        sealed = cipher.seal("token")
        assert sealed.encrypted is True
        assert cipher.open(sealed) == "token"

    def test_seal_without_key(self):
        sealed = TokenCipher(None).seal("token")
        assert sealed == SealedToken("token", encrypted=False)

    def test_open_plain_never_decrypts(self):
        """A plain value that happens to look encoded is not touched."""
        cipher = TokenCipher(KEY)
        lookalike = f"{'0' * 32}:{'1' * 32}:abcd"
        assert cipher.open(SealedToken(lookalike, encrypted=False)) == lookalike
