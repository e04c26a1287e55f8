"""
Build system components for dolly.

- directives: //!submodule, //!extra_library and //!topmodule scanning
- module_graph: module discovery from the project's src directory
- targets: unit test, integration test and top module discovery
- compiler, linker, simulator: the bsc pipeline stages
- pipeline: per-target state machine and fail-fast run loop
- orchestrator: build, test and verilog commands
"""
