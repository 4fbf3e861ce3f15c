from datetime import datetime, timedelta

import pytest

from sarnies_api.services.qr import RedemptionTokenIssuer, VerificationError, VerificationService


def test_redemption_token_is_stamped_and_bounded(codec, clock) -> None:
    credential = RedemptionTokenIssuer(codec).issue({"customer_id": "000005", "voucher_instance_id": "vi-1"})

    claims = codec.decode(credential.token)

    issued_at = int(clock().timestamp())
    assert claims["type"] == "voucher_redemption"
    assert claims["version"] == 1
    assert claims["issuer"] == "sarnies_loyalty"
    assert claims["iat"] == issued_at
    assert claims["exp"] == issued_at + 120
    assert claims["voucher_instance_id"] == "vi-1"
    assert datetime.fromisoformat(claims["expires_at"]) == clock() + timedelta(seconds=120)
    assert credential.expires_in == 120
    assert credential.expires_at == clock() + timedelta(seconds=120)


def test_custom_ttl_overrides_default(codec, clock) -> None:
    credential = RedemptionTokenIssuer(codec).issue({"voucher_instance_id": "vi-1"}, ttl_seconds=30)

    assert credential.expires_in == 30
    assert codec.decode(credential.token)["exp"] == int(clock().timestamp()) + 30


def test_redemption_qr_verifies_until_ttl_then_expires(codec, clock) -> None:
    verifier = VerificationService(codec)
    credential = RedemptionTokenIssuer(codec).issue({"voucher_instance_id": "vi-9"}, ttl_seconds=120)

    clock.advance(119)
    assert verifier.verify_redemption(credential.token).valid

    clock.advance(2)
    result = verifier.verify_redemption(credential.token)
    assert not result.valid
    assert result.error is VerificationError.EXPIRED
    assert result.message == "QR code expired"


@pytest.mark.parametrize("payload", [{}, {"voucher_instance_id": ""}, {"customer_id": "000001"}])
def test_payload_without_voucher_instance_is_rejected(codec, payload) -> None:
    with pytest.raises(ValueError):
        RedemptionTokenIssuer(codec).issue(payload)


def test_payload_declaring_other_type_is_rejected(codec) -> None:
    with pytest.raises(ValueError):
        RedemptionTokenIssuer(codec).issue({"voucher_instance_id": "vi-1", "type": "loyalty_id"})


@pytest.mark.parametrize("ttl", [0, -10, True, "120"])
def test_non_positive_ttl_is_rejected(codec, ttl) -> None:
    with pytest.raises(ValueError):
        RedemptionTokenIssuer(codec).issue({"voucher_instance_id": "vi-1"}, ttl_seconds=ttl)
