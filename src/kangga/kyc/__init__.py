from kangga.kyc.gate import DocumentKycGate, KycDocumentType, KycGate, KycStatus

__all__ = ["DocumentKycGate", "KycDocumentType", "KycGate", "KycStatus"]
