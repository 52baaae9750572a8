#!/usr/bin/env python3
"""Verify an issued certificate against its private key and the root CA."""

import argparse
import sys
from pathlib import Path

from cert_util.lib.config import IssuanceConfig
from cert_util.lib.exceptions import CAMaterialError
from cert_util.lib.issuer import CertificateIssuer
from cert_util.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Verify certificate, key and CA.

    Returns:
        Exit code (0 if the certificate is usable, 1 otherwise)
    """
    config = IssuanceConfig()
    parser = argparse.ArgumentParser(description="Verify an issued certificate")
    parser.add_argument("--cert", type=Path, required=True, help="Issued certificate (PEM)")
    parser.add_argument("--key", type=Path, required=True, help="Private key of the certificate (PEM)")
    parser.add_argument(
        "--ca-cert",
        type=Path,
        default=Path(config.ca_cert_filename),
        help=f"Root CA certificate (default: {config.ca_cert_filename})",
    )
    args = parser.parse_args(argv)

    try:
        result = CertificateIssuer(config).verify(args.cert, args.key, args.ca_cert)
    except CAMaterialError as e:
        LOGGER.error("Could not load certificate material: %s", e)
        return 1
    except Exception as e:
        LOGGER.error("Certificate verification failed: %s", e)
        return 1

    if not result.ok:
        for problem in result.problems:
            LOGGER.error("%s", problem)
        return 1

    LOGGER.info("Certificate %s OK (serial %s)", result.cert_path, result.serial_number)
    return 0


if __name__ == "__main__":
    sys.exit(main())
