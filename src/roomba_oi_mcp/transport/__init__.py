"""Transports that carry Open Interface bytes to the robot."""
