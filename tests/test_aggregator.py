# test_aggregator.py — SearchAggregator ja collect tekaistulla tarjoajalla
#
# FakeProvider palauttaa valmiiksi määritellyt sivut eikä tee verkkokutsuja.
# Sen calls-listasta nähdään mitkä sivut haettiin ja missä järjestyksessä.
#
# Aja: uv run pytest tests/test_aggregator.py -v

import asyncio

import httpx

from discovery.aggregator import SearchAggregator, collect
from discovery.graph import route_after_apply_filters
from discovery.models import Movie, ProviderPage, SearchFilters


def make_pages(count: int, per_page: int = 20, vote=lambda n: 5.0, adult=lambda n: False) -> list[list]:
    """Sivut joiden idt juoksevat 1..count*per_page. vote/adult saavat 0-pohjaisen indeksin."""
    pages = []
    for p in range(count):
        page = []
        for i in range(per_page):
            n = p * per_page + i
            page.append(Movie(id=n + 1, title=f"Movie {n + 1}", vote_average=vote(n), adult=adult(n)))
        pages.append(page)
    return pages


class FakeProvider:
    def __init__(self, pages: list[list], fail_on=()):
        self.pages = pages
        self.fail_on = set(fail_on)
        self.calls: list[tuple] = []

    async def fetch(self, query, page, filter_params=None):
        self.calls.append((query, page))
        if page in self.fail_on:
            # epäonnistuu vain kerran, retry onnistuu
            self.fail_on.discard(page)
            raise httpx.ConnectError("yhteys katkesi")
        results = self.pages[page - 1] if page <= len(self.pages) else []
        return ProviderPage(
            results=list(results),
            total_results=sum(len(p) for p in self.pages),
            has_more=page < len(self.pages),
        )


class SlowProvider(FakeProvider):
    """Kysely "old" jää odottamaan kunnes release asetetaan."""

    def __init__(self, pages):
        super().__init__(pages)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, query, page, filter_params=None):
        if query == "old":
            self.entered.set()
            await self.release.wait()
        return await super().fetch(query, page, filter_params)


# ─────────────────────────────────────────────────────────────
# Filtterit päällä: kaikki sivut haetaan ennen lopullista lukua
# ─────────────────────────────────────────────────────────────

async def test_filtteroitu_kokonaismaara_vasta_kaikkien_sivujen_jalkeen():
    """3 sivua × 20, joista 42 ylittää arvosanarajan."""
    provider = FakeProvider(make_pages(3, vote=lambda n: 8.0 if n < 42 else 5.0))
    agg = SearchAggregator(provider)
    snapshots = []
    agg.subscribe(snapshots.append)

    state = await agg.submit("star", SearchFilters(rating="7.0+"))

    assert provider.calls == [("star", 1), ("star", 2), ("star", 3)]
    assert state["status"] == "ready"
    assert state["has_all_results"] is True
    assert state["filtered_total_results"] == 42
    assert state["total_before"] == 60

    # Ennen viimeistä sivua luku on väliaikainen eikä lopullista kokonaismäärää ole
    provisional = [s for s in snapshots if s.get("status") == "fetching_all" and "shown" in s]
    assert [s["shown"] for s in provisional if s["superset_page"] == 1] == [20]
    assert all(s["filtered_total_results"] is None for s in provisional)

async def test_unsubscribe_lopettaa_ilmoitukset():
    provider = FakeProvider(make_pages(1))
    agg = SearchAggregator(provider)
    seen = []
    unsubscribe = agg.subscribe(seen.append)
    unsubscribe()

    await agg.submit("x")
    assert seen == []

async def test_unsubscribe_kahdesti_ei_kaada():
    agg = SearchAggregator(FakeProvider(make_pages(1)))
    unsubscribe = agg.subscribe(lambda s: None)
    unsubscribe()
    unsubscribe()
    assert agg._listeners == []

async def test_sivuraja_katkaisee_haun(monkeypatch):
    monkeypatch.setattr("discovery.nodes.TMDB_MAX_PAGE", 3)
    provider = FakeProvider(make_pages(5, vote=lambda n: 9.0))
    agg = SearchAggregator(provider)

    state = await agg.submit("x", SearchFilters(rating="9.0+"))

    assert [page for _, page in provider.calls] == [1, 2, 3]
    assert state["is_truncated"] is True
    assert state["has_all_results"] is False
    assert state["status"] == "ready"
    assert state["filtered_total_results"] is None
    assert state["shown"] == 60


# ─────────────────────────────────────────────────────────────
# Filtterit pois: vain pyydetty sivu
# ─────────────────────────────────────────────────────────────

async def test_ilman_filttereita_haetaan_yksi_sivu():
    provider = FakeProvider(make_pages(3))
    agg = SearchAggregator(provider)

    state = await agg.submit("star")

    assert provider.calls == [("star", 1)]
    assert state["status"] == "ready"
    assert state["shown"] == 20
    assert state["has_more"] is True
    assert state["filtered_total_results"] is None

async def test_load_more_lisaa_seuraavan_sivun():
    provider = FakeProvider(make_pages(3))
    agg = SearchAggregator(provider)
    await agg.submit("star")

    await agg.load_more()
    state = await agg.load_more()

    assert [page for _, page in provider.calls] == [1, 2, 3]
    assert [i.id for i in state["filtered"]] == list(range(1, 61))
    assert state["has_more"] is False
    assert state["filtered_total_results"] == 60

    # Ei enempää sivuja → ei uutta kutsua
    await agg.load_more()
    assert len(provider.calls) == 3

async def test_turvatila_piilottaa_ja_laskee():
    provider = FakeProvider(make_pages(1, adult=lambda n: n % 4 == 0))
    agg = SearchAggregator(provider)

    state = await agg.submit("x", safety_enabled=True)

    assert (state["shown"], state["hidden"], state["total_before"]) == (15, 5, 20)
    assert all(not item.adult for item in state["filtered"])

async def test_dislikatut_piilotetaan():
    provider = FakeProvider(make_pages(1))
    agg = SearchAggregator(provider)

    state = await agg.submit("x", disliked_ids={("movie", 1), 2})

    assert [i.id for i in state["filtered"]][:2] == [3, 4]
    assert state["hidden"] == 2

async def test_tyhja_kysely_ei_hae():
    provider = FakeProvider(make_pages(1))
    agg = SearchAggregator(provider)

    state = await agg.submit("   ")

    assert provider.calls == []
    assert state["status"] == "idle"
    assert state["filtered"] == []


# ─────────────────────────────────────────────────────────────
# Virheet ja retry
# ─────────────────────────────────────────────────────────────

async def test_virhe_kesken_sailyttaa_osittaiset_tulokset():
    provider = FakeProvider(make_pages(3, vote=lambda n: 8.0), fail_on={2})
    agg = SearchAggregator(provider)

    state = await agg.submit("x", SearchFilters(rating="7.0+"))

    assert state["status"] == "errored"
    assert state["error"] == "yhteys katkesi"
    assert state["has_all_results"] is False
    assert state["shown"] == 20
    assert state["filtered_total_results"] is None

async def test_retry_aloittaa_alusta():
    provider = FakeProvider(make_pages(3, vote=lambda n: 8.0), fail_on={2})
    agg = SearchAggregator(provider)
    await agg.submit("x", SearchFilters(rating="7.0+"))

    state = await agg.retry()

    assert provider.calls[-3:] == [("x", 1), ("x", 2), ("x", 3)]
    assert state["status"] == "ready"
    assert state["error"] is None
    assert state["filtered_total_results"] == 60

async def test_ensimmaisen_sivun_virhe():
    provider = FakeProvider(make_pages(1), fail_on={1})
    agg = SearchAggregator(provider)

    state = await agg.submit("x")

    assert state["status"] == "errored"
    assert state["filtered"] == []

async def test_rikkinainen_vastaus_nakyy_virheena():
    """Tarjoajan ValueError (esim. rikkinäinen JSON) ei jätä hakua jumiin."""

    class BrokenProvider(FakeProvider):
        async def fetch(self, query, page, filter_params=None):
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

    state = await SearchAggregator(BrokenProvider([])).submit("x", SearchFilters(rating="7.0+"))

    assert state["status"] == "errored"
    assert state["error"].startswith("Expecting value")


# ─────────────────────────────────────────────────────────────
# Uusi kysely peruu vanhan
# ─────────────────────────────────────────────────────────────

async def test_vanha_vastaus_ei_ylikirjoita_uutta():
    provider = SlowProvider(make_pages(1))
    agg = SearchAggregator(provider)
    queries = []
    agg.subscribe(lambda s: queries.append(s["query"]))

    old = asyncio.create_task(agg.submit("old"))
    await provider.entered.wait()
    state = await agg.submit("new")
    provider.release.set()
    await old

    assert state["query"] == "new"
    assert state["status"] == "ready"
    assert agg.state["query"] == "new"
    first_new = queries.index("new")
    assert "old" not in queries[first_new:]
    assert ("old", 1) not in provider.calls


# ─────────────────────────────────────────────────────────────
# Filttereiden vaihto
# ─────────────────────────────────────────────────────────────

async def test_filtterin_vaihto_ilman_verkkoa_kun_kaikki_haettu():
    provider = FakeProvider(make_pages(2, vote=lambda n: 9.0 if n % 2 else 7.5))
    agg = SearchAggregator(provider)
    await agg.submit("x", SearchFilters(rating="7.0+"))
    calls_before = len(provider.calls)

    state = await agg.update_filters(SearchFilters(rating="9.0+"))

    assert len(provider.calls) == calls_before
    assert state["filtered_total_results"] == 20
    assert state["filters"].rating == "9.0+"

async def test_filtterin_vaihto_keskeneraisena_hakee_uudelleen():
    provider = FakeProvider(make_pages(2, vote=lambda n: 8.0))
    agg = SearchAggregator(provider)
    await agg.submit("x")

    state = await agg.update_filters(SearchFilters(rating="8.0+"))

    assert [page for _, page in provider.calls] == [1, 1, 2]
    assert state["filtered_total_results"] == 40


# ─────────────────────────────────────────────────────────────
# Reititys
# ─────────────────────────────────────────────────────────────

def test_reititys_seuraavalle_sivulle():
    assert route_after_apply_filters({"status": "fetching_all"}) == "fetch_next_page"

def test_reititys_loppuu():
    for status in ("ready", "errored"):
        assert route_after_apply_filters({"status": status}) == "__end__"


# ─────────────────────────────────────────────────────────────
# collect: rivin täyttö turvatilassa
# ─────────────────────────────────────────────────────────────

async def test_collect_pyytaa_tuplasti_turvatilassa():
    provider = FakeProvider(make_pages(3, adult=lambda n: n % 2 == 1))

    items = await collect(provider, "", 20, safety_enabled=True)

    assert [page for _, page in provider.calls] == [1, 2]
    assert len(items) == 20
    assert all(not item.adult for item in items)

async def test_collect_ilman_turvatilaa_yksi_sivu():
    provider = FakeProvider(make_pages(3))

    items = await collect(provider, "", 20)

    assert provider.calls == [("", 1)]
    assert [i.id for i in items] == list(range(1, 21))

async def test_collect_loppuu_kun_sivut_loppuvat():
    provider = FakeProvider(make_pages(1, per_page=5))

    items = await collect(provider, "", 20, safety_enabled=True)

    assert len(items) == 5
    assert len(provider.calls) == 1

async def test_collect_nolla():
    provider = FakeProvider(make_pages(1))
    assert await collect(provider, "", 0) == []
    assert provider.calls == []
