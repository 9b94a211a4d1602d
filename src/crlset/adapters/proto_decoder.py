"""
Protobuf adapter — decodes the CRX3 header-proof section.

Adapter layer — implements the HeaderProofDecoder port with the google
protobuf runtime. The crx3.proto schema is small and stable, so it is
declared here as a FileDescriptorProto and registered in a private pool
at import time instead of shipping protoc output:

    package crx_file;
    message CrxFileHeader {
      repeated AsymmetricKeyProof sha256_with_rsa = 2;
      repeated AsymmetricKeyProof sha256_with_ecdsa = 3;
      optional bytes signed_header_data = 10000;
    }
    message AsymmetricKeyProof {
      optional bytes public_key = 1;
      optional bytes signature = 2;
    }
    message SignedData {
      optional bytes crx_id = 1;
    }
"""

from __future__ import annotations

import structlog
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from crlset.domain.errors import HeaderDecodeError
from crlset.domain.models import HeaderProof, KeyProof
from crlset.railway.result import Result

log = structlog.get_logger()

_FIELD = descriptor_pb2.FieldDescriptorProto


def _crx3_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="crlset/crx3.proto",
        package="crx_file",
        syntax="proto2",
    )

    proof = file_proto.message_type.add(name="AsymmetricKeyProof")
    proof.field.add(name="public_key", number=1, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL)
    proof.field.add(name="signature", number=2, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL)

    header = file_proto.message_type.add(name="CrxFileHeader")
    for name, number in (("sha256_with_rsa", 2), ("sha256_with_ecdsa", 3)):
        header.field.add(
            name=name,
            number=number,
            type=_FIELD.TYPE_MESSAGE,
            type_name=".crx_file.AsymmetricKeyProof",
            label=_FIELD.LABEL_REPEATED,
        )
    header.field.add(
        name="signed_header_data", number=10000, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL
    )

    signed_data = file_proto.message_type.add(name="SignedData")
    signed_data.field.add(name="crx_id", number=1, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL)
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_crx3_file_descriptor().SerializeToString())

CrxFileHeader = message_factory.GetMessageClass(_POOL.FindMessageTypeByName("crx_file.CrxFileHeader"))
AsymmetricKeyProof = message_factory.GetMessageClass(_POOL.FindMessageTypeByName("crx_file.AsymmetricKeyProof"))
SignedData = message_factory.GetMessageClass(_POOL.FindMessageTypeByName("crx_file.SignedData"))


def _to_key_proofs(proofs: object) -> tuple[KeyProof, ...]:
    return tuple(KeyProof(public_key=p.public_key, signature=p.signature) for p in proofs)  # type: ignore[attr-defined]


class ProtobufHeaderDecoder:
    """
    Decode CRX3 CrxFileHeader bytes into a HeaderProof.

    Implements the HeaderProofDecoder port. Undecodable input becomes a
    HeaderDecodeError failure.
    """

    def decode(self, header_proof: bytes | memoryview) -> Result[HeaderProof]:
        return Result.attempt(lambda: self._do_decode(bytes(header_proof)))

    def _do_decode(self, raw: bytes) -> HeaderProof:
        message = CrxFileHeader()
        try:
            message.ParseFromString(raw)
        except DecodeError as e:
            raise HeaderDecodeError(f"CRX header is not a valid CrxFileHeader: {e}") from e

        signed_header_data = (
            message.signed_header_data if message.HasField("signed_header_data") else None
        )
        proof = HeaderProof(
            rsa_proofs=_to_key_proofs(message.sha256_with_rsa),
            ecdsa_proofs=_to_key_proofs(message.sha256_with_ecdsa),
            signed_header_data=signed_header_data,
        )
        log.debug(
            "header.decoded",
            rsa_proofs=len(proof.rsa_proofs),
            ecdsa_proofs=len(proof.ecdsa_proofs),
            has_signed_data=signed_header_data is not None,
        )
        return proof
