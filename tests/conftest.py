"""
测试公共夹具
"""
import logging
import socket
import pytest
from unittest.mock import patch
from datetime import datetime, timezone, timedelta

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from ssl_certificate_diagnosis.services.cert_fetcher import TLSCertificateFetcher


@pytest.fixture(scope="session")
def signing_key():
    """会话内共用的签名密钥"""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_der_certificate(signing_key):
    """
    生成DER编码的自签名证书

    subject_cn / issuer_cn 为None时对应名称中不包含通用名称。
    """
    def _make(subject_cn="example.com", issuer_cn="Test CA", not_after=None, san=None,
              issuer_alt_name=None):
        not_after = not_after or datetime.now(timezone.utc) + timedelta(days=200)
        not_before = not_after - timedelta(days=365)

        def _name(common_name, organization):
            attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization)]
            if common_name is not None:
                attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
            return x509.Name(attributes)

        builder = (
            x509.CertificateBuilder()
            .subject_name(_name(subject_cn, "Example Org"))
            .issuer_name(_name(issuer_cn, "Example CA Org"))
            .public_key(signing_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )

        if san is not None:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(name) for name in san]),
                critical=False
            )

        if issuer_alt_name is not None:
            builder = builder.add_extension(
                x509.IssuerAlternativeName([x509.DNSName(name) for name in issuer_alt_name]),
                critical=False
            )

        cert = builder.sign(signing_key, hashes.SHA256())
        return cert.public_bytes(serialization.Encoding.DER)

    return _make


# IssuerAlternativeName (2.5.29.18) 与 SubjectAlternativeName (2.5.29.17) 的DER编码OID
ISSUER_ALT_NAME_OID = bytes.fromhex("0603551d12")
SUBJECT_ALT_NAME_OID = bytes.fromhex("0603551d11")


@pytest.fixture
def make_duplicate_san_certificate(make_der_certificate):
    """
    生成包含两个备用名称扩展的DER证书

    把颁发者备用名称扩展的OID改写成主题备用名称，长度不变，签名失效但仍可加载。
    """
    def _make(**kwargs):
        der = make_der_certificate(
            san=kwargs.pop('san', ["example.com"]),
            issuer_alt_name=["ca.example.net"],
            **kwargs
        )
        assert der.count(ISSUER_ALT_NAME_OID) == 1
        return der.replace(ISSUER_ALT_NAME_OID, SUBJECT_ALT_NAME_OID)

    return _make


@pytest.fixture(autouse=True)
def reset_diagnosis_logger():
    """每个测试结束后移除日志处理器，避免处理器持有已关闭的输出流"""
    yield
    logger = logging.getLogger("ssl_certificate_diagnosis")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def serve_certificates():
    """
    替换真实的TLS连接

    返回的字典登记 域名 -> DER证书；未登记的域名按DNS解析失败处理。
    """
    served = {}

    def _peer_certificate(domain):
        if domain not in served:
            raise socket.gaierror(-2, "Name or service not known")
        return served[domain]

    with patch.object(TLSCertificateFetcher, '_get_peer_certificate', side_effect=_peer_certificate):
        yield served


@pytest.fixture
def scenario_certificates(serve_certificates, make_der_certificate):
    """
    常用场景：
    example.com 主题匹配、200天后过期；
    www.example.com 备用名称匹配、10天后过期；
    other.org 证书签发给其他域名；
    nosuchhost.invalid 无法连接。
    """
    now = datetime.now(timezone.utc)
    serve_certificates.update({
        "example.com": make_der_certificate(
            subject_cn="example.com", issuer_cn="R3",
            not_after=now + timedelta(days=200), san=["example.com"]
        ),
        "www.example.com": make_der_certificate(
            subject_cn="example.com", issuer_cn="R3",
            not_after=now + timedelta(days=10), san=["example.com", "www.example.com"]
        ),
        "other.org": make_der_certificate(
            subject_cn="example.com", issuer_cn="R3",
            not_after=now + timedelta(days=200), san=["example.com"]
        ),
    })
    return serve_certificates
