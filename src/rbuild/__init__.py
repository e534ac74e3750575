"""rbuild - compile action generation for Rust crates.

Builds the argument list, environment and input set of a single rustc
invocation per target, and exposes compiled crates to C/C++ linking.
"""

__version__ = "0.1.0"
