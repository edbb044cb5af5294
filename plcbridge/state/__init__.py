"""Runtime state containers for the PLC MQTT bridge."""
