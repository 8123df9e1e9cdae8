"""Tests for free-tier client quota enforcement."""

from billing_engine.services.client_quota import FREE_CLIENT_LIMIT, ClientQuotaEnforcer


class TestClientQuotaEnforcer:
    """Archiving clients beyond the free limit."""

    async def test_archives_newest_clients_beyond_limit(self, repository, company, make_clients):
        clients = await make_clients(5)
        enforcer = ClientQuotaEnforcer(repository)

        archived = await enforcer.enforce(company.company_id)

        assert archived == [clients[3].client_id, clients[4].client_id]
        assert [c.archived for c in clients] == [False, False, False, True, True]
        assert await repository.count_active_clients(company.company_id) == FREE_CLIENT_LIMIT

    async def test_enforcement_is_idempotent(self, repository, company, make_clients):
        await make_clients(5)
        enforcer = ClientQuotaEnforcer(repository)

        await enforcer.enforce(company.company_id)
        assert await enforcer.enforce(company.company_id) == []
        assert await repository.count_active_clients(company.company_id) == 3

    async def test_within_limit_is_untouched(self, repository, company, make_clients):
        clients = await make_clients(3)

        assert await ClientQuotaEnforcer(repository).enforce(company.company_id) == []
        assert not any(c.archived for c in clients)

    async def test_no_company_is_noop(self, repository):
        assert await ClientQuotaEnforcer(repository).enforce(None) == []

    async def test_archived_clients_do_not_count(
        self, session, repository, company, make_clients
    ):
        clients = await make_clients(4)
        clients[0].archived = True
        await session.flush()

        assert await ClientQuotaEnforcer(repository).enforce(company.company_id) == []
        assert await repository.count_active_clients(company.company_id) == 3


class TestClientCapacity:
    """Capacity reporting for the create-client guard."""

    async def test_free_company_at_limit(self, repository, company, make_clients):
        await make_clients(3)

        capacity = await ClientQuotaEnforcer(repository).check_capacity(
            company.company_id, unlimited=False
        )

        assert not capacity.can_create
        assert capacity.count == 3
        assert capacity.limit == 3
        assert capacity.remaining == 0

    async def test_free_company_below_limit(self, repository, company, make_clients):
        await make_clients(1)

        capacity = await ClientQuotaEnforcer(repository).check_capacity(
            company.company_id, unlimited=False
        )

        assert capacity.can_create
        assert capacity.remaining == 2

    async def test_pro_company_is_unlimited(self, repository, company, make_clients):
        await make_clients(7)

        capacity = await ClientQuotaEnforcer(repository).check_capacity(
            company.company_id, unlimited=True
        )

        assert capacity.can_create
        assert capacity.count == 7
        assert capacity.limit is None
        assert capacity.remaining is None
