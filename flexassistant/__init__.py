"""flexassistant — Flexpool balance, payment, block and worker notifications."""

APP_NAME = "flexassistant"
__version__ = "1.0.0"
