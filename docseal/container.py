"""
DocSeal Streaming Container
===========================

Chunked hybrid encryption for files too large to hold in memory.  The
file key is generated once and wrapped for every recipient, exactly as in
:mod:`docseal.hybrid`; only the bulk encryption is split into chunks.

Format layout (v1)
-------------------------
::

    [HEADER: 16 bytes]
      0-7   Magic    b"DOCSEAL\\x00"
      8     Version  0x01
      9     AlgID    0x01 (AES-256-GCM, RSA-OAEP-SHA256 key wrap)
     10-15  Reserved (zeroed)

    [RECIPIENTS]
      Count : 2 bytes (big-endian)
      per recipient:
        Fingerprint        : 20 bytes
        Wrapped key length : 2 bytes (big-endian)
        Wrapped key        : variable

    [PAYLOAD]
      Base nonce : 12 bytes
      per chunk:
        Chunk nonce  : 12 bytes  (base_nonce XOR chunk_index)
        Chunk length : 4 bytes   (big-endian, 0 = final sentinel)
        Ciphertext + tag : chunk length + 16 bytes

Every chunk is authenticated with ``header || recipients || chunk_index``
as associated data, so chunks cannot be reordered, dropped or moved to
another file, and the zero-length sentinel detects truncation.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterable, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from docseal import asymmetric, cipher
from docseal.config import DEFAULT_CHUNK, NONCE_SIZE, TAG_SIZE
from docseal.errors import FormatError, IntegrityError, RecipientNotFoundError
from docseal.hybrid import HolderKey, RecipientKey

logger = logging.getLogger(__name__)

MAGIC: bytes = b"DOCSEAL\x00"
FORMAT_VERSION: int = 1
ALG_HYBRID: int = 1
HEADER_SIZE: int = 16
FINGERPRINT_BYTES: int = 20

PathLike = Union[str, Path]
ByteProgress = Callable[[int, int], None]


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------


def _build_header() -> bytes:
    header = bytearray(HEADER_SIZE)
    header[0:8] = MAGIC
    header[8] = FORMAT_VERSION
    header[9] = ALG_HYBRID
    return bytes(header)


def _parse_header(data: bytes) -> None:
    if len(data) < HEADER_SIZE:
        raise FormatError("Data too short to contain a valid DocSeal header.")
    if data[0:8] != MAGIC:
        raise FormatError("Invalid magic bytes: not a DocSeal container.")
    if data[8] != FORMAT_VERSION:
        raise FormatError(f"Unsupported container version {data[8]} (expected {FORMAT_VERSION}).")
    if data[9] != ALG_HYBRID:
        raise FormatError(f"Unsupported algorithm ID {data[9]}.")


def _derive_chunk_nonce(base_nonce: bytes, index: int) -> bytes:
    """XOR the 12-byte base nonce with a chunk index."""
    n = int.from_bytes(base_nonce, "big") ^ index
    return n.to_bytes(NONCE_SIZE, "big")


def _read_exact(fin: BinaryIO, size: int, what: str) -> bytes:
    data = fin.read(size)
    if len(data) != size:
        raise FormatError(f"Truncated {what}.")
    return data


def _recipient_table(wrapped_keys: Dict[str, bytes]) -> bytes:
    parts = [struct.pack(">H", len(wrapped_keys))]
    for fp, wrapped in wrapped_keys.items():
        parts.append(bytes.fromhex(fp))
        parts.append(struct.pack(">H", len(wrapped)))
        parts.append(wrapped)
    return b"".join(parts)


# ---------------------------------------------------------------------------
# Encrypt
# ---------------------------------------------------------------------------


def encrypt_file_for_recipients(
    input_path: PathLike,
    output_path: PathLike,
    recipient_public_keys: Iterable[RecipientKey],
    *,
    chunk_size: int = DEFAULT_CHUNK,
    progress_callback: Optional[ByteProgress] = None,
) -> Dict[str, bytes]:
    """
    Stream-encrypt a file for one or more recipients.

    The container is written to a ``.part`` file that replaces
    *output_path* only once the sentinel chunk is written; on any failure
    it is removed.

    Returns
    -------
    dict
        Recipient fingerprint to wrapped key, as written in the header.

    Raises
    ------
    ValueError
        If no recipients are given or *output_path* is *input_path*.
    """
    recipients = [asymmetric.as_public_key(k) for k in recipient_public_keys]
    if not recipients:
        raise ValueError("At least one recipient public key is required.")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive.")

    file_key = cipher.generate_key()
    wrapped_keys: Dict[str, bytes] = {}
    for public_key in recipients:
        fp = asymmetric.fingerprint(public_key)
        if fp not in wrapped_keys:
            wrapped_keys[fp] = asymmetric.wrap_symmetric_key(file_key, public_key)

    input_path = Path(input_path)
    output_path = Path(output_path)
    if input_path.resolve() == output_path.resolve():
        raise ValueError("Output path must differ from the input path.")
    partial = output_path.with_name(output_path.name + ".part")
    total = input_path.stat().st_size
    preamble = _build_header() + _recipient_table(wrapped_keys)

    try:
        with open(input_path, "rb") as fin, open(partial, "wb") as fout:
            chunk_index = _encrypt_stream(
                fin, fout, AESGCM(file_key), preamble, chunk_size, total, progress_callback
            )
        os.replace(partial, output_path)
    except BaseException:
        try:
            partial.unlink()
        except FileNotFoundError:
            pass
        raise

    logger.info(
        "Stream-encrypted %s (%d bytes, %d chunk(s)) for %d recipient(s)",
        input_path.name,
        total,
        chunk_index,
        len(wrapped_keys),
    )
    return wrapped_keys


def _encrypt_stream(fin, fout, aesgcm, preamble, chunk_size, total, progress_callback) -> int:
    base_nonce = os.urandom(NONCE_SIZE)
    fout.write(preamble)
    fout.write(base_nonce)

    chunk_index = 0
    bytes_processed = 0

    while True:
        chunk = fin.read(chunk_size)
        if not chunk:
            break
        cnonce = _derive_chunk_nonce(base_nonce, chunk_index)
        aad = preamble + struct.pack(">Q", chunk_index)
        fout.write(cnonce)
        fout.write(struct.pack(">I", len(chunk)))
        fout.write(aesgcm.encrypt(cnonce, chunk, aad))
        chunk_index += 1
        bytes_processed += len(chunk)
        if progress_callback:
            progress_callback(bytes_processed, total)

    # Sentinel
    cnonce = _derive_chunk_nonce(base_nonce, chunk_index)
    aad = preamble + struct.pack(">Q", chunk_index)
    fout.write(cnonce)
    fout.write(struct.pack(">I", 0))
    fout.write(aesgcm.encrypt(cnonce, b"", aad))
    return chunk_index


# ---------------------------------------------------------------------------
# Decrypt
# ---------------------------------------------------------------------------


def read_recipients(fin: BinaryIO) -> Dict[str, bytes]:
    """Parse the header and recipient table from an open container."""
    header = _read_exact(fin, HEADER_SIZE, "header")
    _parse_header(header)
    (count,) = struct.unpack(">H", _read_exact(fin, 2, "recipient count"))
    if count == 0:
        raise FormatError("Container lists no recipients.")
    recipients: Dict[str, bytes] = {}
    for _ in range(count):
        fp = _read_exact(fin, FINGERPRINT_BYTES, "recipient fingerprint").hex()
        (wk_len,) = struct.unpack(">H", _read_exact(fin, 2, "wrapped-key length"))
        recipients[fp] = _read_exact(fin, wk_len, "wrapped key")
    return recipients


def decrypt_file_for_recipient(
    input_path: PathLike,
    output_path: PathLike,
    private_key: HolderKey,
    *,
    progress_callback: Optional[ByteProgress] = None,
) -> None:
    """
    Decrypt a container written by :func:`encrypt_file_for_recipients`.

    Plaintext is written to a ``.part`` file that replaces *output_path*
    only after the sentinel chunk verifies; on any failure it is removed.

    Raises
    ------
    RecipientNotFoundError
        If the container has no wrapped key for *private_key*.
    UnwrapError
        If the wrapped key cannot be opened.
    IntegrityError
        If any chunk fails authentication or is out of order.
    FormatError
        If the container is malformed or truncated.
    """
    private_key = asymmetric.as_private_key(private_key)
    input_path = Path(input_path)
    output_path = Path(output_path)
    partial = output_path.with_name(output_path.name + ".part")
    total = input_path.stat().st_size

    try:
        with open(input_path, "rb") as fin, open(partial, "wb") as fout:
            _decrypt_stream(fin, fout, private_key, total, progress_callback)
        os.replace(partial, output_path)
    except BaseException:
        try:
            partial.unlink()
        except FileNotFoundError:
            pass
        raise


def _decrypt_stream(fin, fout, private_key, total, progress_callback) -> None:
    preamble_start = fin.tell()
    recipients = read_recipients(fin)
    preamble_end = fin.tell()
    fin.seek(preamble_start)
    preamble = fin.read(preamble_end - preamble_start)

    fp = asymmetric.fingerprint(private_key.public_key())
    if fp not in recipients:
        raise RecipientNotFoundError(f"Container has no wrapped key for {fp}.")
    file_key = asymmetric.unwrap_symmetric_key(recipients[fp], private_key)
    aesgcm = AESGCM(file_key)

    base_nonce = _read_exact(fin, NONCE_SIZE, "base nonce")
    chunk_index = 0
    bytes_processed = len(preamble) + NONCE_SIZE

    while True:
        cnonce = fin.read(NONCE_SIZE)
        if len(cnonce) == 0:
            raise FormatError("Missing sentinel: file may be truncated.")
        if len(cnonce) != NONCE_SIZE:
            raise FormatError("Truncated chunk nonce.")
        (chunk_pt_len,) = struct.unpack(">I", _read_exact(fin, 4, "chunk length"))
        ct_len = chunk_pt_len + TAG_SIZE
        ct = _read_exact(fin, ct_len, "chunk ciphertext")

        if cnonce != _derive_chunk_nonce(base_nonce, chunk_index):
            raise IntegrityError("Chunk nonce mismatch: possible reordering attack.")

        aad = preamble + struct.pack(">Q", chunk_index)
        try:
            pt = aesgcm.decrypt(cnonce, ct, aad)
        except InvalidTag as exc:
            raise IntegrityError(
                f"Authentication failed on chunk {chunk_index}: wrong key or corrupted data."
            ) from exc

        if chunk_pt_len == 0:
            if fin.read(1):
                raise FormatError("Unexpected data after the sentinel chunk.")
            break

        fout.write(pt)
        chunk_index += 1
        bytes_processed += NONCE_SIZE + 4 + ct_len
        if progress_callback:
            progress_callback(bytes_processed, total)
