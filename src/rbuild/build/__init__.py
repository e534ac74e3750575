"""Compile action construction for Rust crates.

Modules, leaves first:
- dependency_collector: validate and aggregate declared dependencies
- build_script_inputs: fold build script outputs into the action inputs
- link_flags: rpaths, native and crate link flags
- arguments: rustc argument list and environment
- compile_action: drive the above and register the action
- cc_interop: expose the compiled crate to C/C++ linking
"""
