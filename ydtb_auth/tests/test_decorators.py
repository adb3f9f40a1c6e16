"""
测试装饰器
"""

from django.http import JsonResponse
from django.test import TestCase, RequestFactory

from ..decorators import require_workspace_ready
from ..services import AuthService
from .factories import UserFactory, OwnerFactory


@require_workspace_ready()
def protected_view(request):
    return JsonResponse({'session_id': str(request.auth_session.id), 'status': request.onboarding.status.value})


class RequireWorkspaceReadyTest(TestCase):
    """直接调用被装饰的视图"""

    def setUp(self):
        self.factory = RequestFactory()
        self.auth_service = AuthService()

    def request_with(self, user=None):
        headers = {}
        if user is not None:
            token = self.auth_service.create_session(user)['token']
            headers['HTTP_AUTHORIZATION'] = f'Bearer {token}'
        return self.factory.get('/protected/', **headers)

    def test_anonymous(self):
        response = protected_view(self.request_with())

        self.assertEqual(response.status_code, 401)
        self.assertJSONEqual(response.content, {
            'error': 'Authentication required',
            'code': 'NEEDS_AUTH',
            'redirect': '/login',
        })

    def test_invalid_token(self):
        request = self.factory.get('/protected/', HTTP_AUTHORIZATION='Bearer not-a-token')
        self.assertEqual(protected_view(request).status_code, 401)

    def test_unverified(self):
        response = protected_view(self.request_with(UserFactory(email='u@example.com', email_verified=False)))

        self.assertEqual(response.status_code, 403)
        self.assertJSONEqual(response.content, {
            'error': 'Email verification required',
            'code': 'NEEDS_VERIFICATION',
            'redirect': '/verify-otp?email=u%40example.com',
        })

    def test_without_workspace(self):
        response = protected_view(self.request_with(UserFactory()))

        self.assertEqual(response.status_code, 409)
        self.assertJSONEqual(response.content, {
            'error': 'Workspace required',
            'code': 'NEEDS_WORKSPACE',
            'redirect': '/welcome',
        })

    def test_ready(self):
        user = UserFactory()
        OwnerFactory(user=user)

        response = protected_view(self.request_with(user))

        self.assertEqual(response.status_code, 200)
        self.assertJSONEqual(response.content.decode(), {
            'session_id': str(user.sessions.get().id),
            'status': 'READY',
        })

    def test_bearer_keyword_is_case_insensitive(self):
        user = UserFactory()
        OwnerFactory(user=user)
        token = self.auth_service.create_session(user)['token']

        response = protected_view(self.factory.get('/protected/', HTTP_AUTHORIZATION=f'bearer {token}'))

        self.assertEqual(response.status_code, 200)


class DecoratorIntegrationTest(TestCase):
    """通过 URL 路由访问被保护的视图"""

    def setUp(self):
        self.user = UserFactory()
        token = AuthService().create_session(self.user)['token']
        self.headers = {'HTTP_AUTHORIZATION': f'Bearer {token}'}

    def test_custom_redirect(self):
        response = self.client.get('/join-only/', **self.headers)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['redirect'], '/welcome/join')

    def test_dashboard(self):
        membership = OwnerFactory(user=self.user)

        response = self.client.get('/dashboard/', **self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'user_id': str(self.user.id),
            'workspaces': [membership.workspace.slug],
        })
