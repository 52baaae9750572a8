#!/usr/bin/env python3
"""Issue the localhost key, CSR and certificate signed by the root CA."""

import argparse
import sys
from pathlib import Path

from cert_util.lib.config import IssuanceConfig
from cert_util.lib.exceptions import CAMaterialError, ExtensionFileError
from cert_util.lib.issuer import CertificateIssuer
from cert_util.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Run the issuance sequence.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config = IssuanceConfig()
    parser = argparse.ArgumentParser(description="Issue a localhost certificate signed by the root CA")
    parser.add_argument(
        "--ca-key",
        type=Path,
        default=Path(config.ca_key_filename),
        help=f"Root CA private key (default: {config.ca_key_filename})",
    )
    parser.add_argument(
        "--ca-cert",
        type=Path,
        default=Path(config.ca_cert_filename),
        help=f"Root CA certificate (default: {config.ca_cert_filename})",
    )
    parser.add_argument(
        "--ext-file",
        type=Path,
        default=Path(config.ext_filename),
        help=f"X.509 extension file (default: {config.ext_filename})",
    )
    parser.add_argument(
        "--ext-section",
        default=None,
        help="Extension file section to read, like openssl -extensions (default: unnamed top section)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("certs"),
        help="Output directory for key, CSR and certificate (default: certs)",
    )
    args = parser.parse_args(argv)

    try:
        issuer = CertificateIssuer(config)

        LOGGER.info("Issuing certificate for CN=%s", config.common_name)
        result = issuer.issue(
            ca_key_path=args.ca_key,
            ca_cert_path=args.ca_cert,
            ext_file_path=args.ext_file,
            output_dir=args.output_dir,
            ext_section=args.ext_section,
        )

        LOGGER.info("Certificate issued:")
        LOGGER.info("  Key: %s", result.key_path)
        LOGGER.info("  CSR: %s", result.csr_path)
        LOGGER.info("  Cert: %s", result.cert_path)
        LOGGER.info("  Full chain: %s", result.fullchain_path)
        LOGGER.info("  Serial: %s", result.serial_number)
        return 0

    except CAMaterialError as e:
        LOGGER.error("CA material error: %s", e)
        return 1
    except ExtensionFileError as e:
        LOGGER.error("Extension file error: %s", e)
        return 1
    except Exception as e:
        LOGGER.error("Certificate issuance failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
