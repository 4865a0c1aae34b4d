import ssl
import hashlib
import logging
from datetime import datetime, timezone
from typing import List, Optional

import OpenSSL
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from core.models import CertificateInfo

logger = logging.getLogger(__name__)

ASN1_TIME_FORMAT = "%Y%m%d%H%M%SZ"


class CertificateInspector:
    """Extracts leaf certificate metadata; never validates the chain."""

    def inspect_session(self, ssl_object: ssl.SSLObject) -> Optional[CertificateInfo]:
        """Inspect the peer certificate of a completed TLS session"""
        if ssl_object is None:
            return None
        cert_bin = ssl_object.getpeercert(binary_form=True)
        if not cert_bin:
            logger.debug("TLS peer presented no certificate")
            return None
        return self.inspect_der(cert_bin)

    def inspect_der(self, cert_der: bytes, now: Optional[datetime] = None) -> Optional[CertificateInfo]:
        """Build CertificateInfo from DER bytes; None when the bytes do not parse"""
        try:
            cert = OpenSSL.crypto.load_certificate(OpenSSL.crypto.FILETYPE_ASN1, cert_der)
        except OpenSSL.crypto.Error as e:
            logger.debug(f"Certificate parse failed: {e}")
            return None

        try:
            parsed = cert.to_cryptography()
            valid_from = self._asn1_time(cert.get_notBefore())
            valid_to = self._asn1_time(cert.get_notAfter())
            now = now or datetime.now(timezone.utc)

            return CertificateInfo(
                subject=parsed.subject.rfc4514_string(),
                issuer=parsed.issuer.rfc4514_string(),
                valid_from=valid_from,
                valid_to=valid_to,
                dns_names=self._dns_names(parsed),
                is_expired=now > valid_to,
                fingerprint_sha256=self.fingerprint(cert_der),
                public_key_bits=self.public_key_bits(parsed),
                signature_algorithm=cert.get_signature_algorithm().decode('ascii', errors='ignore'),
            )
        except (ValueError, OpenSSL.crypto.Error) as e:
            logger.debug(f"Certificate inspection failed: {e}")
            return None

    @staticmethod
    def fingerprint(cert_der: bytes) -> str:
        return hashlib.sha256(cert_der).hexdigest()

    @staticmethod
    def public_key_bits(cert: x509.Certificate) -> int:
        """RSA modulus size, EC curve size, 0 for anything else"""
        public_key = cert.public_key()
        if isinstance(public_key, rsa.RSAPublicKey):
            return public_key.key_size
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            return public_key.curve.key_size
        return 0

    @staticmethod
    def _dns_names(cert: x509.Certificate) -> List[str]:
        try:
            san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return []
        return san.value.get_values_for_type(x509.DNSName)

    @staticmethod
    def _asn1_time(value: Optional[bytes]) -> datetime:
        if not value:
            raise ValueError("certificate has no validity time")
        return datetime.strptime(value.decode('ascii'), ASN1_TIME_FORMAT).replace(tzinfo=timezone.utc)
