"""StormCellar: publish the current hour's weather condition code over MQTT."""

__version__ = "1.0.0"
