"""Entry point for running cns-oci as a module."""

from cns_oci.tool.cns_oci import main

if __name__ == "__main__":
    main()
