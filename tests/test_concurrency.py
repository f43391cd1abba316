"""
tests/test_concurrency.py

Concurrent submissions against one deployment.
"""

import threading

from smoothsend import sign_authorization
from smoothsend.core.exceptions import NonceMismatch

from conftest import RECIPIENT, RELAYER, SENDER, TOKEN, TREASURY, make_auth


def race(protocol, submissions):
    """Run each submission on its own thread; collect (result, error) pairs."""
    barrier = threading.Barrier(len(submissions))
    results = [None] * len(submissions)

    def worker(i, call):
        barrier.wait()
        try:
            results[i] = (call(), None)
        except Exception as exc:
            results[i] = (None, exc)

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(submissions)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentSubmissions:

    def test_same_authorization_settles_once(self, protocol, sender_key):
        auth = make_auth()
        sig  = sign_authorization(auth, sender_key)
        pub  = sender_key.public_key_bytes

        results = race(protocol, [
            lambda: protocol.execute_authorization(RELAYER, auth, sig, pub)
            for _ in range(8)
        ])

        settled  = [r for r, e in results if e is None]
        rejected = [e for r, e in results if e is not None]
        assert len(settled) == 1
        assert len(rejected) == 7
        assert all(isinstance(e, NonceMismatch) for e in rejected)

        assert protocol.current_nonce(SENDER) == 1
        assert protocol.balance_of(SENDER, TOKEN) == 390
        assert protocol.balance_of(RECIPIENT, TOKEN) == 500
        assert protocol.balance_of(TREASURY, TOKEN) == 10
        assert protocol.balance_of(RELAYER, TOKEN) == 100

    def test_sequential_nonces_from_threads(self, protocol, sender_key):
        signed = []
        for nonce in range(4):
            auth = make_auth(nonce=nonce, amount=10, max_fee=20, declared_gas_cost=10)
            signed.append((auth, sign_authorization(auth, sender_key)))
        pub = sender_key.public_key_bytes

        # Threads may arrive in any order; retry until each nonce lands.
        def submit_until_settled(auth, sig):
            def call():
                while True:
                    try:
                        return protocol.execute_authorization(RELAYER, auth, sig, pub)
                    except NonceMismatch:
                        if protocol.current_nonce(SENDER) > auth.nonce:
                            raise
            return call

        results = race(protocol, [submit_until_settled(a, s) for a, s in signed])
        assert all(e is None for _, e in results)
        assert protocol.current_nonce(SENDER) == 4
        assert protocol.balance_of(RECIPIENT, TOKEN) == 40
        assert len(protocol.audit.records()) == 5
        assert protocol.audit.verify_chain()
