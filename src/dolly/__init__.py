"""dolly - build tool for Bluespec SystemVerilog projects."""

__version__ = "0.1.0"
