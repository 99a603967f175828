import unittest

from pydantic import ValidationError

from stormcellar.models import CurrentConditions, ForecastPayload, HourlyForecast


class TestForecastModels(unittest.TestCase):
    def test_condition_code_is_first_weather_id(self):
        hour = HourlyForecast.model_validate({"dt": 1717264800, "weather": [{"id": 500}, {"id": 701}]})
        self.assertEqual(hour.condition_code, 500)

    def test_empty_or_null_weather_has_no_code(self):
        self.assertIsNone(HourlyForecast.model_validate({"dt": 1, "weather": []}).condition_code)
        self.assertIsNone(HourlyForecast.model_validate({"dt": 1, "weather": None}).condition_code)
        self.assertIsNone(CurrentConditions().condition_code)

    def test_payload_ignores_unknown_fields_and_defaults_blocks(self):
        payload = ForecastPayload.model_validate({"minutely": [], "daily": [], "hourly": None})
        self.assertEqual(payload.hourly, [])
        self.assertIsNone(payload.current)

    def test_condition_without_usable_id_has_no_code(self):
        self.assertIsNone(HourlyForecast.model_validate({"dt": 1, "weather": [{"main": "Clouds"}]}).condition_code)
        self.assertIsNone(HourlyForecast.model_validate({"dt": 1, "weather": [{"id": "cloudy"}]}).condition_code)
        self.assertIsNone(HourlyForecast.model_validate({"dt": 1, "weather": ["Clouds", {"id": 800}]}).condition_code)

    def test_non_list_weather_is_empty(self):
        self.assertEqual(CurrentConditions.model_validate({"weather": {"id": 800}}).weather, [])

    def test_malformed_hourly_entries_are_dropped(self):
        payload = ForecastPayload.model_validate({
            "hourly": [
                {"weather": [{"id": 800}]},
                {"dt": "soon", "weather": [{"id": 801}]},
                "garbage",
                {"dt": 1717264800, "weather": [{"id": 500}]},
            ],
        })
        self.assertEqual([hour.dt for hour in payload.hourly], [1717264800])

    def test_malformed_current_block_becomes_none(self):
        payload = ForecastPayload.model_validate({"current": "n/a", "hourly": []})
        self.assertIsNone(payload.current)

    def test_malformed_current_fields_keep_block(self):
        current = ForecastPayload.model_validate({"current": {"dt": "now", "weather": [{"id": 803}]}}).current
        self.assertIsNone(current.dt)
        self.assertEqual(current.condition_code, 803)

    def test_non_object_payload_is_rejected(self):
        with self.assertRaises(ValidationError):
            ForecastPayload.model_validate([{"dt": 1}])

    def test_non_list_hourly_is_rejected(self):
        with self.assertRaises(ValidationError):
            ForecastPayload.model_validate({"hourly": "unavailable"})


if __name__ == "__main__":
    unittest.main()
