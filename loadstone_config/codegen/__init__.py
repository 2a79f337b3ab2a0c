"""Generators for the Rust modules and linker script of a Loadstone port."""