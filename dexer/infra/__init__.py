"""Infrastructure: toolchain configuration, environment, remote execution and ninja output."""
