import unittest
from datetime import datetime, timedelta

from corrective.core.enums import AssetCriticality, Priority
from corrective.core.errors import ValidationFailed
from corrective.db import models
from corrective.failures.priority import calculate_priority, sla_due_at


class PriorityCalculatorTests(unittest.TestCase):
    def test_score_bands(self):
        cases = [
            ({"asset_criticality": "HIGH", "caused_downtime": True}, 65, Priority.P1),
            ({"asset_criticality": "MEDIUM", "caused_downtime": True, "is_intermittent": True}, 53, Priority.P2),
            ({}, 20, Priority.P3),
            ({"asset_criticality": AssetCriticality.LOW}, 15, Priority.P4),
        ]
        for kwargs, score, priority in cases:
            with self.subTest(kwargs=kwargs):
                result = calculate_priority(**kwargs)
                self.assertEqual(result.score, score)
                self.assertEqual(result.priority, priority)

    def test_safety_always_forces_p1(self):
        for criticality in [None, *AssetCriticality]:
            for observation in (False, True):
                result = calculate_priority(
                    asset_criticality=criticality,
                    is_safety_related=True,
                    is_observation=observation,
                )
                self.assertEqual(result.priority, Priority.P1)
                self.assertIn("Riesgo de seguridad detectado", result.reasons)

    def test_observation_never_p1_without_safety(self):
        result = calculate_priority(asset_criticality="CRITICAL", caused_downtime=True, is_observation=True)
        self.assertEqual(result.score, 70)
        self.assertEqual(result.priority, Priority.P2)
        self.assertEqual(result.factors.failure_type, 0)

    def test_reasons_from_factors(self):
        result = calculate_priority(asset_criticality="CRITICAL", caused_downtime=True)
        self.assertIn("Causó parada de producción", result.reasons)
        self.assertIn("Equipo crítico", result.reasons)

    def test_reasons_for_intermittent_and_observation(self):
        result = calculate_priority(asset_criticality="HIGH", is_intermittent=True)
        self.assertEqual(result.reasons, ["Equipo de alta criticidad", "Falla intermitente"])
        result = calculate_priority(asset_criticality="MEDIUM", is_observation=True)
        self.assertEqual(result.reasons, ["Solo observación, sin falla inmediata"])

    def test_generic_reason_when_no_factor_fires(self):
        result = calculate_priority(asset_criticality="LOW")
        self.assertEqual(result.reasons, ["Bajo impacto, atender cuando sea posible"])

    def test_invalid_criticality(self):
        with self.assertRaises(ValidationFailed):
            calculate_priority(asset_criticality="EXTREME")

    def test_sla_due_at_uses_tenant_hours(self):
        settings_row = models.CorrectiveSettings(sla_p1_hours=4, sla_p2_hours=8, sla_p3_hours=24, sla_p4_hours=72)
        reported_at = datetime(2026, 1, 1, 8, 0)
        self.assertEqual(sla_due_at(settings_row, Priority.P2, reported_at), reported_at + timedelta(hours=8))


if __name__ == "__main__":
    unittest.main()
