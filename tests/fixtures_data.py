"""Conjunto de dados reutilizável para cenários de teste de autenticação."""

HEAD_CHEF_SIGNUP = {
    "email": "a@x.com",
    "password": "secret1",
    "firstName": "Ana",
    "lastName": "Souza",
    "restaurantName": "Cantina da Ana",
    "restaurantType": "italian",
}

OTHER_HEAD_CHEF_SIGNUP = {
    "email": "bruno@y.com",
    "password": "secret2",
    "firstName": "Bruno",
    "lastName": "Lima",
    "restaurantName": "Bistro Bruno",
}

TEAM_MEMBER_JOHN = {
    "first_name": "John",
    "last_name": "Smith",
}

TEAM_LOGIN_JOHN = {
    "username": "john",
    "password": "smith",
}

TEST_SECRETS = {
    "head-chef": "test-head-chef-secret",
    "team": "test-team-secret",
    "default": "test-default-secret",
    "refresh": "test-refresh-secret",
}
