"""
API tests for the clinical workflow endpoints.

These exercise the HTTP surface end to end: serializer validation, the
workflow and sync services underneath, and the error envelope produced
by the exception handler.
"""

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from clinical.models import ClinicalAssessment, ConsultRequest, Task, WardPatient
from clinical.tests.notes_fixtures import CONSULT_NOTE, FULL_NOTE


class WorkflowAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="residente", password="P@ssw0rd1")
        self.client.force_authenticate(self.user)
        self.consult = ConsultRequest.objects.create(
            nombre="Juan Pérez", dni="30111222", cama="UTI 2", relato_consulta="Disnea",
        )
        self.assessment = ClinicalAssessment.objects.create(
            clinical_notes=FULL_NOTE, source_interconsulta=self.consult,
        )

    def test_requires_authentication(self):
        anonymous = APIClient()
        resp = anonymous.post(reverse('consult-promote', args=[self.consult.pk]),
                              {'assessmentId': self.assessment.pk}, format='json')
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.assertFalse(resp.data['ok'])

    def test_promote_then_duplicate(self):
        url = reverse('consult-promote', args=[self.consult.pk])
        resp = self.client.post(url, {'assessmentId': self.assessment.pk}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data['ok'])
        patient = WardPatient.objects.get(pk=resp.data['patientId'])
        self.assertEqual(patient.diagnostico, "Neumonía aguda de la comunidad")

        resp = self.client.post(url, {'assessmentId': self.assessment.pk}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'duplicate_patient')
        self.assertEqual(resp.data['error']['message'], "Ya existe un paciente con DNI 30111222: Juan Pérez")

    def test_promote_unknown_assessment(self):
        resp = self.client.post(reverse('consult-promote', args=[self.consult.pk]),
                                {'assessmentId': 987654}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data['error']['code'], 'not_found')

    def test_promote_rejects_bad_payload(self):
        resp = self.client.post(reverse('consult-promote', args=[self.consult.pk]), {}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data['ok'])

    def test_preview(self):
        resp = self.client.get(reverse('consult-preview', args=[self.consult.pk]),
                               {'assessmentId': self.assessment.pk})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['nombre'], "Juan Pérez")
        self.assertIsNone(resp.data['data']['id'])
        self.assertEqual(WardPatient.objects.count(), 0)

    def test_promote_edited_sanitizes_text(self):
        resp = self.client.post(reverse('consult-promote-edited'), {
            'assessmentId': self.assessment.pk,
            'nombre': "Juan Pérez",
            'dni': "30111222",
            'plan': "<script>x()</script>Antibióticos",
            'severidad': 'III',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        patient = WardPatient.objects.get(pk=resp.data['patientId'])
        self.assertNotIn('<script>', patient.plan)
        self.assertIn("Antibióticos", patient.plan)

    def test_promote_edited_missing_identity(self):
        resp = self.client.post(reverse('consult-promote-edited'),
                                {'assessmentId': self.assessment.pk, 'nombre': "Juan"}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['fields'], ['dni'])

    def test_response_status_and_resolve(self):
        resp = self.client.post(reverse('consult-response', args=[self.consult.pk]),
                                {'respuesta': "Evaluado"}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        resp = self.client.post(reverse('consult-status', args=[self.consult.pk]),
                                {'status': 'En Proceso'}, format='json')
        self.assertEqual(resp.data['status'], 'En Proceso')

        resp = self.client.post(reverse('consult-resolve', args=[self.consult.pk]),
                                {'assessmentId': self.assessment.pk}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.consult.refresh_from_db()
        self.assertEqual(self.consult.respuesta, "Evaluado")
        self.assertEqual(self.consult.status, ConsultRequest.STATUS_RESOLVED)

        resp = self.client.post(reverse('consult-status', args=[self.consult.pk]),
                                {'status': 'Cancelada'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'validation_failure')

    def test_template(self):
        resp = self.client.get(reverse('consult-template', args=[self.consult.pk]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn("PACIENTE: Juan Pérez", resp.data['template'])
        self.assertIn("ENFERMEDAD ACTUAL:\nDisnea", resp.data['template'])
        self.assertEqual(resp.data['format'], 'soap')

        resp = self.client.get(reverse('consult-template', args=[self.consult.pk]), {'layout': 'consulta'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['format'], 'consulta')
        self.assertTrue(resp.data['template'].startswith("PACIENTE: Juan Pérez\n"))
        self.assertIn("Enfermedad actual:\nDisnea", resp.data['template'])

        resp = self.client.get(reverse('consult-template', args=[self.consult.pk]), {'layout': 'libre'})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_note_parse(self):
        resp = self.client.post(reverse('note-parse'), {'text': FULL_NOTE}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['patient']['dni'], "30111222")
        self.assertEqual(resp.data['diagnosis'], "Neumonía aguda de la comunidad")
        self.assertEqual(resp.data['sections']['antecedentes'], "HTA, DBT2.")
        self.assertEqual(resp.data['format'], 'soap')

        resp = self.client.post(reverse('note-parse'), {'text': "texto libre"}, format='json')
        self.assertIsNone(resp.data['diagnosis'])
        self.assertEqual(resp.data['found'], [])

    def test_note_parse_consult_answer(self):
        resp = self.client.post(reverse('note-parse'), {'text': CONSULT_NOTE}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['format'], 'consulta')
        self.assertEqual(resp.data['patient']['dni'], "27999888")
        self.assertEqual(resp.data['diagnosis'], "ACV isquémico agudo en territorio de ACM izquierda")
        self.assertEqual(resp.data['sections']['sugerencias'], "RMN de encéfalo\nEcodoppler de vasos de cuello")


class PendientesAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="jefe", password="P@ssw0rd1")
        self.client.force_authenticate(self.user)
        self.patient = WardPatient.objects.create(
            nombre="Ana Gómez", cama="4", dni="123", pendientes="Pedir TAC", severidad='IV',
        )

    def test_sync_all_and_complete(self):
        resp = self.client.post(reverse('pendientes-sync'), format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        task = Task.objects.get(patient=self.patient, source=Task.SOURCE_WARD_ROUNDS)
        self.assertEqual(task.priority, 'high')

        resp = self.client.post(reverse('task-complete', args=[task.pk]),
                                {'clearPatientPendientes': True}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.pendientes, "")

    def test_sync_one_patient(self):
        resp = self.client.post(reverse('ward-patient-sync', args=[self.patient.pk]), format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(Task.objects.filter(patient=self.patient).count(), 1)

        resp = self.client.post(reverse('ward-patient-sync', args=[987654]), format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_complete_unknown_task(self):
        resp = self.client.post(reverse('task-complete', args=[987654]), {}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
