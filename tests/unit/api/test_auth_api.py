"""
Unit Tests for Authentication and User API Endpoints
"""
import aiosmtplib
import pytest
from httpx import AsyncClient
from faker import Faker
from sqlalchemy import select

from cidco_records.models.user import User

fake = Faker()

TEST_PASSWORD = 'testpassword123'
GENERIC_RESET_MESSAGE = 'If an account with that email or username exists, a reset link has been sent.'
INVALID_LINK_MESSAGE = 'The reset link is invalid or has expired.'


class TestLogin:
    """Test login endpoint"""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, test_user):
        response = await client.post('/api/login', json={
            'username': test_user.username,
            'password': TEST_PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()
        assert data['id'] == test_user.id
        assert data['username'] == test_user.username
        assert data['role'] == 'user'
        assert data['token_type'] == 'bearer'
        assert data['access_token']
        assert 'password_hash' not in data

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, test_user):
        response = await client.post('/api/login', json={
            'username': test_user.username,
            'password': 'wrongpassword',
        })

        assert response.status_code == 401
        assert response.json()['error'] == 'Invalid credentials'

    @pytest.mark.asyncio
    async def test_login_with_stored_hash_rejected(self, client: AsyncClient, test_user):
        response = await client.post('/api/login', json={
            'username': test_user.username,
            'password': test_user.password_hash,
        })

        assert response.status_code == 401
        assert response.json()['error'] == 'Invalid credentials'

    @pytest.mark.asyncio
    async def test_login_unknown_user_same_error(self, client: AsyncClient):
        response = await client.post('/api/login', json={'username': 'ghost', 'password': 'x'})

        assert response.status_code == 401
        assert response.json()['error'] == 'Invalid credentials'

    @pytest.mark.asyncio
    async def test_login_legacy_plaintext(self, client: AsyncClient, legacy_user):
        response = await client.post('/api/login', json={
            'username': legacy_user.username,
            'password': 'legacy-pass-1',
        })

        assert response.status_code == 200
        assert response.json()['username'] == legacy_user.username

    @pytest.mark.asyncio
    async def test_token_grants_access(self, client: AsyncClient, test_user, plot_rows):
        login = await client.post('/api/login', json={
            'username': test_user.username,
            'password': TEST_PASSWORD,
        })
        token = login.json()['access_token']

        response = await client.get('/api/regions', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 200


class TestAuthorization:
    """Bearer token checks on protected routes"""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get('/api/regions')

        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_TOKEN'

    @pytest.mark.asyncio
    async def test_bad_token(self, client: AsyncClient):
        response = await client.get('/api/regions', headers={'Authorization': 'Bearer nonsense'})

        assert response.status_code == 401


class TestAddUser:
    """Test /users/add"""

    @pytest.mark.asyncio
    async def test_admin_can_add(self, client: AsyncClient, admin_auth_headers, db_session):
        username = fake.user_name()
        response = await client.post('/api/users/add', headers=admin_auth_headers, json={
            'username': username,
            'password': 'clerkpass1',
            'email': fake.email(),
            'name': fake.name(),
        })

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': 'User created successfully'}

        user = (await db_session.execute(select(User).where(User.username == username))).scalar_one()
        assert user.role == 'user'
        assert user.password_hash != 'clerkpass1'

    @pytest.mark.asyncio
    async def test_admin_can_add_admin(self, client: AsyncClient, admin_auth_headers, db_session):
        response = await client.post('/api/users/add', headers=admin_auth_headers, json={
            'username': 'second-admin',
            'password': 'pw',
            'role': 'admin',
        })

        assert response.status_code == 200
        user = (await db_session.execute(select(User).where(User.username == 'second-admin'))).scalar_one()
        assert user.role == 'admin'

    @pytest.mark.asyncio
    async def test_regular_user_cannot_add(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/users/add', headers=auth_headers, json={
            'username': 'sneaky',
            'password': 'pw',
        })

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_duplicate_username(self, client: AsyncClient, admin_auth_headers, test_user):
        response = await client.post('/api/users/add', headers=admin_auth_headers, json={
            'username': test_user.username,
            'password': 'pw',
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'VALIDATION_ERROR'

    @pytest.mark.asyncio
    async def test_missing_password(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/users/add', headers=admin_auth_headers, json={
            'username': 'nopass',
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'VALIDATION_ERROR'


class TestUpdatePassword:
    """Test /users/update-password"""

    @pytest.mark.asyncio
    async def test_user_updates_own_password(self, client: AsyncClient, test_user, auth_headers):
        response = await client.post('/api/users/update-password', headers=auth_headers, json={
            'userId': test_user.id,
            'newPassword': 'new-password-1',
        })

        assert response.status_code == 200
        assert response.json() == {'success': True}

        login = await client.post('/api/login', json={
            'username': test_user.username,
            'password': 'new-password-1',
        })
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_user_cannot_update_someone_else(self, client: AsyncClient, admin_user, auth_headers):
        response = await client.post('/api/users/update-password', headers=auth_headers, json={
            'userId': admin_user.id,
            'newPassword': 'hijack',
        })

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_updates_other_user(self, client: AsyncClient, test_user, admin_auth_headers):
        response = await client.post('/api/users/update-password', headers=admin_auth_headers, json={
            'userId': test_user.id,
            'newPassword': 'set-by-admin',
        })

        assert response.status_code == 200


class TestPasswordReset:
    """Forgot / reset password flow"""

    @pytest.mark.asyncio
    async def test_forgot_unknown_identifier(self, client: AsyncClient, fake_email):
        response = await client.post('/api/forgot-password', json={'identifier': 'nobody@nowhere.test'})

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': GENERIC_RESET_MESSAGE}
        assert fake_email.sent == []

    @pytest.mark.asyncio
    async def test_forgot_known_user_same_answer(self, client: AsyncClient, test_user, fake_email):
        response = await client.post('/api/forgot-password', json={'identifier': test_user.username})

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': GENERIC_RESET_MESSAGE}
        assert len(fake_email.sent) == 1
        assert fake_email.sent[0]['link'].startswith('https://records.test/#/reset-password/')

    @pytest.mark.asyncio
    async def test_forgot_undelivered_email_same_answer(self, client: AsyncClient, test_user,
                                                        fake_email, db_session):
        fake_email.deliver = False

        response = await client.post('/api/forgot-password', json={'identifier': test_user.username})

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': GENERIC_RESET_MESSAGE}
        await db_session.refresh(test_user)
        assert test_user.reset_token is not None
        assert fake_email.sent[0]['link'].endswith(test_user.reset_token)

    @pytest.mark.asyncio
    async def test_forgot_smtp_error_same_answer(self, client: AsyncClient, test_user,
                                                 fake_email, db_session):
        """SMTP failures are logged, never shown to the caller"""
        fake_email.error = aiosmtplib.SMTPException('Connection refused by relay')

        response = await client.post('/api/forgot-password', json={'identifier': test_user.email})

        assert response.status_code == 200
        assert response.json() == {'success': True, 'message': GENERIC_RESET_MESSAGE}
        assert 'relay' not in response.text
        await db_session.refresh(test_user)
        assert len(test_user.reset_token) == 64

    @pytest.mark.asyncio
    async def test_reset_then_reuse(self, client: AsyncClient, test_user, fake_email):
        await client.post('/api/forgot-password', json={'identifier': test_user.email})
        token = fake_email.sent[0]['link'].rsplit('/', 1)[-1]

        first = await client.post('/api/reset-password', json={'token': token, 'password': 'fresh-pass'})
        second = await client.post('/api/reset-password', json={'token': token, 'password': 'other'})

        assert first.status_code == 200
        assert first.json() == {'success': True, 'message': 'Your password has been successfully updated.'}
        assert second.status_code == 400
        assert second.json()['error'] == INVALID_LINK_MESSAGE

        login = await client.post('/api/login', json={'username': test_user.username, 'password': 'fresh-pass'})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_unknown_token(self, client: AsyncClient):
        response = await client.post('/api/reset-password', json={'token': 'f' * 64, 'password': 'x'})

        assert response.status_code == 400
        assert response.json()['error'] == INVALID_LINK_MESSAGE
