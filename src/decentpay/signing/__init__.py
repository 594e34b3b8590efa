from decentpay.signing.signer import CallbackSigner, Signer, SignedObligation

__all__ = ["CallbackSigner", "SignedObligation", "Signer"]
