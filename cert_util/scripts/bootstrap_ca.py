#!/usr/bin/env python3
"""Create a local development root CA key and certificate."""

import argparse
import sys
from pathlib import Path

from cert_util.lib.config import IssuanceConfig
from cert_util.lib.issuer import CertificateIssuer
from cert_util.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Bootstrap the root CA.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Create a local development root CA")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Output directory for rootCA.key and rootCA.pem (default: current directory)",
    )
    args = parser.parse_args(argv)

    try:
        issuer = CertificateIssuer(IssuanceConfig())

        LOGGER.info("Creating root CA...")
        result = issuer.bootstrap_root_ca(args.output_dir)

        LOGGER.info("Root CA created:")
        LOGGER.info("  Key: %s", result.root_key_path)
        LOGGER.info("  Cert: %s", result.root_cert_path)
        LOGGER.info("  Serial: %s", result.root_serial)
        LOGGER.info("Next: run cert-util-issue")
        return 0

    except FileExistsError as e:
        LOGGER.error("Refusing to overwrite root CA: %s", e)
        return 1
    except Exception as e:
        LOGGER.error("Root CA bootstrap failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
