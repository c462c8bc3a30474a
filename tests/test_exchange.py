import threading

import pytest

from predmarket.core.config import ExchangeConfig
from predmarket.core.errors import (
    AccountExistsError,
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidMarketParametersError,
    InvalidTradeError,
    MarketNotFoundError,
    MarketNotOpenError,
)
from predmarket.core.types import MarketStatus, Outcome, PoolState, Resolution, ResolutionKind
from predmarket.exec.executor import Exchange


@pytest.fixture
def exchange():
    ex = Exchange()
    ex.open_account("house", balance=500)
    ex.open_account("alice", balance=1000)
    ex.open_account("bob", balance=1000)
    ex.create_market("Will it rain?", 0.5, 100, creator_id="house", market_id="RAIN")
    return ex


def test_create_market_prices_at_initial_probability():
    ex = Exchange()
    ex.open_account("maker", balance=50)
    m = ex.create_market("Q?", 0.3, 20, creator_id="maker")
    assert m.pool == PoolState(20, 20)
    assert m.weight == 0.3
    assert ex.probability(m.id) == pytest.approx(0.3)
    assert ex.balance("maker") == 30


@pytest.mark.parametrize("prob,ante", [(0, 100), (1, 100), (1.2, 100), (0.5, 5)])
def test_create_market_validation(prob, ante):
    ex = Exchange()
    with pytest.raises(InvalidMarketParametersError):
        ex.create_market("Q?", prob, ante)


def test_create_market_requires_ante_funds():
    ex = Exchange()
    ex.open_account("poor", balance=5)
    with pytest.raises(InsufficientBalanceError):
        ex.create_market("Q?", 0.5, 10, creator_id="poor")
    assert ex.store.markets == {}


def test_duplicate_account_rejected(exchange):
    with pytest.raises(AccountExistsError):
        exchange.open_account("alice")


def test_buy_applies_quote(exchange):
    quote = exchange.quote_buy("RAIN", Outcome.YES, 10)
    trade = exchange.buy("alice", "RAIN", "YES", 10)
    assert trade.shares == pytest.approx(quote.shares_or_payout)
    assert trade.prob_before == 0.5
    assert trade.prob_after == pytest.approx(0.5475, abs=1e-4)
    assert exchange.balance("alice") == 990
    pos = exchange.store.position("alice", "RAIN")
    assert pos.yes_shares == pytest.approx(19.0909, abs=1e-4)
    assert pos.invested == 10
    assert exchange.store.get_market("RAIN").pool == quote.pool


def test_quote_does_not_mutate(exchange):
    exchange.quote_buy("RAIN", Outcome.NO, 50)
    exchange.quote_sell("RAIN", Outcome.NO, 5)
    assert exchange.store.get_market("RAIN").pool == PoolState(100, 100)
    assert exchange.store.trades == {}


def test_buy_validation(exchange):
    with pytest.raises(InvalidTradeError):
        exchange.buy("alice", "RAIN", Outcome.YES, 0)
    with pytest.raises(InvalidTradeError):
        exchange.buy("alice", "RAIN", Outcome.YES, 0.5)
    with pytest.raises(InsufficientBalanceError):
        exchange.buy("alice", "RAIN", Outcome.YES, 5000)
    with pytest.raises(MarketNotFoundError):
        exchange.buy("alice", "NOPE", Outcome.YES, 10)


def test_buy_sell_round_trip_restores_balance(exchange):
    trade = exchange.buy("alice", "RAIN", Outcome.NO, 25)
    exchange.sell("alice", "RAIN", Outcome.NO, trade.shares)
    assert exchange.balance("alice") == pytest.approx(1000, abs=1e-4)
    pool = exchange.store.get_market("RAIN").pool
    assert pool.pool_yes == pytest.approx(100, abs=1e-6)
    assert pool.pool_no == pytest.approx(100, abs=1e-6)
    assert exchange.store.position("alice", "RAIN").no_shares == 0


def test_sell_snaps_to_holding(exchange):
    trade = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    sell = exchange.sell("alice", "RAIN", Outcome.YES, trade.shares - 0.005)
    assert sell.shares == trade.shares
    assert exchange.store.position("alice", "RAIN").yes_shares == 0


def test_partial_sell_keeps_remainder(exchange):
    trade = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    exchange.sell("alice", "RAIN", Outcome.YES, 5)
    assert exchange.store.position("alice", "RAIN").yes_shares == pytest.approx(trade.shares - 5)


def test_sell_more_than_held_rejected(exchange):
    exchange.buy("alice", "RAIN", Outcome.YES, 10)
    with pytest.raises(InsufficientSharesError):
        exchange.sell("alice", "RAIN", Outcome.YES, 100)
    with pytest.raises(InsufficientSharesError):
        exchange.sell("bob", "RAIN", Outcome.YES, 1)
    with pytest.raises(InvalidTradeError):
        exchange.sell("alice", "RAIN", Outcome.YES, -1)


def test_rollback_newest_first(exchange):
    first = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    second = exchange.buy("bob", "RAIN", Outcome.NO, 30)

    results = exchange.rollback([first.id])
    assert not results[0].success
    assert "later trade" in results[0].error

    results = exchange.rollback([first.id, second.id])
    assert [r.trade_id for r in results] == [second.id, first.id]
    assert all(r.success for r in results)
    assert exchange.store.get_market("RAIN").pool == PoolState(100, 100)
    assert exchange.balance("alice") == 1000
    assert exchange.balance("bob") == 1000
    assert exchange.store.position("alice", "RAIN").yes_shares == pytest.approx(0, abs=1e-9)
    assert exchange.store.last_trade("RAIN") is None


def test_rollback_sell(exchange):
    buy = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    sell = exchange.sell("alice", "RAIN", Outcome.YES, 4)
    pool_before_sell = sell.pool_before
    results = exchange.rollback([sell.id])
    assert results[0].success
    assert exchange.store.get_market("RAIN").pool == pool_before_sell
    assert exchange.store.position("alice", "RAIN").yes_shares == pytest.approx(buy.shares)
    assert exchange.balance("alice") == pytest.approx(990)


def test_rollback_unknown_and_repeated(exchange):
    trade = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    assert exchange.rollback([trade.id])[0].success
    results = exchange.rollback([trade.id, "missing"])
    assert {r.trade_id: r.success for r in results} == {trade.id: False, "missing": False}


def test_resolve_yes_pays_winning_shares(exchange):
    yes = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    exchange.buy("bob", "RAIN", Outcome.NO, 10)
    payouts = exchange.resolve("RAIN", "YES")
    assert payouts["alice"] == pytest.approx(yes.shares)
    assert payouts["bob"] == 0
    assert exchange.balance("alice") == pytest.approx(990 + yes.shares)
    market = exchange.store.get_market("RAIN")
    assert market.status is MarketStatus.RESOLVED
    with pytest.raises(MarketNotOpenError):
        exchange.buy("alice", "RAIN", Outcome.YES, 10)
    with pytest.raises(MarketNotOpenError):
        exchange.resolve("RAIN", "NO")


def test_resolve_probability_and_na(exchange):
    yes = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    no = exchange.buy("bob", "RAIN", Outcome.NO, 10)
    payouts = exchange.resolve("RAIN", 0.7)
    assert payouts["alice"] == pytest.approx(0.7 * yes.shares)
    assert payouts["bob"] == pytest.approx(0.3 * no.shares)

    ex = Exchange()
    ex.open_account("alice", balance=100)
    ex.create_market("Q?", 0.5, 50, market_id="M")
    ex.buy("alice", "M", Outcome.YES, 20)
    assert ex.resolve("M", "N/A") == {"alice": 20}
    assert ex.balance("alice") == 100


def test_resolution_parse():
    assert Resolution.parse("yes").kind is ResolutionKind.YES
    assert Resolution.parse("N/A").kind is ResolutionKind.NA
    assert Resolution.parse("0.25") == Resolution(ResolutionKind.PROB, 0.25)
    with pytest.raises(ValueError):
        Resolution.parse("maybe")
    with pytest.raises(ValueError):
        Resolution.parse(1.5)


def test_position_value_and_net_worth(exchange):
    trade = exchange.buy("alice", "RAIN", Outcome.YES, 10)
    prob = exchange.probability("RAIN")
    assert exchange.position_value("alice", "RAIN") == pytest.approx(trade.shares * prob)
    assert exchange.net_worth("alice") == pytest.approx(990 + trade.shares * prob)


def test_min_bet_from_config():
    ex = Exchange(config=ExchangeConfig(min_bet=5))
    ex.open_account("alice", balance=100)
    ex.create_market("Q?", 0.5, 50, market_id="M")
    with pytest.raises(InvalidTradeError):
        ex.buy("alice", "M", Outcome.YES, 4)


def test_concurrent_trades_keep_pool_chain_consistent(exchange):
    users = [f"u{i}" for i in range(8)]
    for u in users:
        exchange.open_account(u, balance=10_000)
    weight = exchange.store.get_market("RAIN").weight
    k0 = PoolState(100, 100).invariant(weight)

    def worker(user, outcome):
        for i in range(40):
            exchange.buy(user, "RAIN", outcome, 1 + i % 5)

    threads = [
        threading.Thread(target=worker, args=(u, Outcome.YES if i % 2 else Outcome.NO))
        for i, u in enumerate(users)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    trades = exchange.store.trades_for_market("RAIN")
    assert len(trades) == 8 * 40
    for prev, cur in zip(trades, trades[1:]):
        assert cur.pool_before == prev.pool_after
    final = exchange.store.get_market("RAIN").pool
    assert final == trades[-1].pool_after
    assert final.invariant(weight) == pytest.approx(k0, rel=1e-6)
