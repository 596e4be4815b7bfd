"""
Tests for release trust — gpg status parsing, checksum listings, the
isolated keyring, and both verification strategies.
"""

import hashlib
from pathlib import Path

import pytest

from tests.simulated_host import colons_listing, sha256_listing, status_lines
from vpnode.adapters.mock import MockRunner
from vpnode.core.errors import (
    BadSignature,
    ChecksumMismatch,
    CommandError,
    FingerprintMismatch,
    InsufficientSignatures,
    TrustUnavailable,
)
from vpnode.core.models.trust import Artifact, Signer, VerificationPolicy
from vpnode.core.services.trust import (
    BITCOIN_CORE_POLICY,
    BITCOIN_CORE_SIGNERS,
    LND_POLICY,
    LND_SIGNER,
    Keyring,
    verify_single_signer,
    verify_threshold,
)
from vpnode.core.services.trust.checksums import parse_listing, sha256_file, verify_artifact_checksum
from vpnode.core.services.trust.gpg_status import good_signers, parse_status, primary_fingerprints
from vpnode.core.services.trust.keyring import ensure_gpg

TARBALL_URL = "https://bitcoincore.org/bin/bitcoin-core-29.2/bitcoin-29.2-x86_64-linux-gnu.tar.gz"
SIG_URL = "https://github.com/lightningnetwork/lnd/releases/download/v0.20.0-beta/manifest-roasbeef-v0.20.0-beta.sig"


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    d = tmp_path / "work"
    d.mkdir()
    return d


@pytest.fixture
def keyring(mock_runner, mock_fetcher, workdir) -> Keyring:
    return Keyring(mock_runner, mock_fetcher, workdir / "gnupg")


def _artifact(workdir: Path, content: bytes = b"release tarball") -> Artifact:
    # Saved under a local name that differs from the published one
    path = workdir / "download.bin"
    path.write_bytes(content)
    return Artifact(url=TARBALL_URL, destination=path, version="29.2")


def _listing(workdir: Path, name: str, content: bytes) -> Path:
    path = workdir / name
    path.write_text(sha256_listing({"bitcoin-29.2-x86_64-linux-gnu.tar.gz": content}))
    return path


def _publish_all(gpg, keyring: Keyring, signers=BITCOIN_CORE_SIGNERS) -> None:
    for signer in signers:
        gpg.publish_key(signer, keyring.key_file(signer))


# ── gpg status parsing ───────────────────────────────────────────────


class TestParseStatus:
    def test_good_and_bad(self):
        a, b = BITCOIN_CORE_SIGNERS[:2]
        records = parse_status(status_lines(good=[a], bad=[b]))
        assert [r.result for r in records] == ["GOODSIG", "BADSIG"]
        assert records[0].good
        assert records[0].fingerprint == a.fingerprint
        assert records[0].primary_fingerprint == a.fingerprint
        assert not records[1].good

    def test_ignores_noise(self):
        output = "gpg: Signature made Tue\nrandom text\n[GNUPG:]\n"
        assert parse_status(output) == []

    def test_subkey_signature_matches_primary(self):
        signer = BITCOIN_CORE_SIGNERS[0]
        subkey = "AAAABBBBCCCCDDDDEEEEFFFF0000111122223333"
        output = (
            f"[GNUPG:] GOODSIG {subkey[-16:]} builder\n"
            f"[GNUPG:] VALIDSIG {subkey} 2025-10-01 1759300000 0 4 0 1 10 00 {signer.fingerprint}\n"
        )
        [record] = parse_status(output)
        assert record.matches(signer.fingerprint)
        assert record.matches(subkey)

    def test_key_id_fallback_without_validsig(self):
        signer = BITCOIN_CORE_SIGNERS[0]
        [record] = parse_status(f"[GNUPG:] GOODSIG {signer.long_key_id} builder\n")
        assert record.matches(signer.fingerprint)
        assert not record.matches(BITCOIN_CORE_SIGNERS[1].fingerprint)

    def test_errsig_is_not_good(self):
        [record] = parse_status("[GNUPG:] ERRSIG 8E4256593F177720 1 10 00 1700000000 9 -\n")
        assert record.result == "ERRSIG"
        assert not record.good


class TestGoodSigners:
    def test_only_trusted_good_signatures_count(self):
        a, b, c = BITCOIN_CORE_SIGNERS[:3]
        stranger = Signer(
            name="stranger", fingerprint="0" * 40, key_url="https://example.org/s.asc",
        )
        records = parse_status(status_lines(good=[a, stranger], bad=[b]))
        found = good_signers(records, [a.fingerprint, b.fingerprint, c.fingerprint])
        assert found == {a.fingerprint}

    def test_duplicate_signatures_count_once(self):
        a = BITCOIN_CORE_SIGNERS[0]
        records = parse_status(status_lines(good=[a, a]))
        assert good_signers(records, [a.fingerprint]) == {a.fingerprint}


class TestPrimaryFingerprints:
    def test_skips_subkeys(self):
        fpr = BITCOIN_CORE_SIGNERS[0].fingerprint
        assert primary_fingerprints(colons_listing(fpr)) == [fpr]

    def test_multiple_keys(self):
        a, b = BITCOIN_CORE_SIGNERS[:2]
        output = colons_listing(a.fingerprint) + colons_listing(b.fingerprint)
        assert primary_fingerprints(output) == [a.fingerprint, b.fingerprint]

    def test_empty(self):
        assert primary_fingerprints("") == []


# ── Checksums ────────────────────────────────────────────────────────


class TestChecksums:
    def test_sha256_file(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"abc")
        assert sha256_file(path) == hashlib.sha256(b"abc").hexdigest()

    def test_parse_listing_formats(self):
        digest = "a" * 64
        text = (
            "# comment\n"
            f"{digest}  plain.tar.gz\n"
            f"{digest.upper()} *binary-mode.tar.gz\n"
            f"{digest}  ./bin/nested.zip\n"
            "not-a-digest  junk\n"
            "\n"
        )
        entries = parse_listing(text)
        assert entries["plain.tar.gz"] == digest
        assert entries["binary-mode.tar.gz"] == digest
        assert entries["nested.zip"] == digest
        assert "junk" not in entries

    def test_match_by_published_name(self, workdir):
        artifact = _artifact(workdir)
        listing = _listing(workdir, "SHA256SUMS", b"release tarball")
        assert verify_artifact_checksum(artifact, listing) == hashlib.sha256(b"release tarball").hexdigest()

    def test_mismatch(self, workdir):
        artifact = _artifact(workdir)
        listing = _listing(workdir, "SHA256SUMS", b"tampered")
        with pytest.raises(ChecksumMismatch) as exc:
            verify_artifact_checksum(artifact, listing)
        assert exc.value.expected == hashlib.sha256(b"tampered").hexdigest()
        assert exc.value.actual == hashlib.sha256(b"release tarball").hexdigest()

    def test_missing_entry(self, workdir):
        artifact = _artifact(workdir)
        listing = workdir / "SHA256SUMS"
        listing.write_text(sha256_listing({"other.tar.gz": b"x"}))
        with pytest.raises(ChecksumMismatch, match="no entry"):
            verify_artifact_checksum(artifact, listing)


# ── Keyring ──────────────────────────────────────────────────────────


class TestKeyring:
    def test_prepare_creates_private_home(self, keyring):
        keyring.prepare()
        assert keyring.home.is_dir()
        assert keyring.home.stat().st_mode & 0o777 == 0o700

    def test_ensure_gpg_installs_when_missing(self):
        runner = MockRunner(available=("wget",))
        ensure_gpg(runner)
        assert runner.call_log == [["apt-get", "install", "-y", "-qq", "gnupg"]]

    def test_ensure_gpg_noop_when_present(self, mock_runner):
        ensure_gpg(mock_runner)
        assert mock_runner.call_count == 0

    def test_gpg_uses_isolated_homedir(self, gpg, keyring):
        signer = BITCOIN_CORE_SIGNERS[0]
        gpg.publish_key(signer, keyring.key_file(signer))
        keyring.prepare()
        assert keyring.import_signer(signer) == signer.fingerprint

        gpg_calls = gpg.runner.calls_with("gpg")
        assert gpg_calls
        for argv in gpg_calls:
            assert argv[:5] == ["gpg", "--homedir", str(keyring.home), "--batch", "--no-tty"]

    def test_substituted_key_rejected_before_import(self, gpg, keyring):
        signer = BITCOIN_CORE_SIGNERS[0]
        impostor = BITCOIN_CORE_SIGNERS[1].fingerprint
        gpg.publish_key(signer, keyring.key_file(signer), fingerprint=impostor)
        keyring.prepare()

        with pytest.raises(FingerprintMismatch) as exc:
            keyring.import_signer(signer)
        assert exc.value.expected == signer.fingerprint
        assert exc.value.actual == [impostor]
        assert gpg.runner.calls_with("--import") == []

    def test_import_failure_is_command_error(self, gpg, keyring):
        signer = BITCOIN_CORE_SIGNERS[0]
        gpg.publish_key(signer, keyring.key_file(signer))
        gpg.runner.fail("--import", output="gpg: no valid OpenPGP data found")
        keyring.prepare()
        with pytest.raises(CommandError, match="Import key for fanquake"):
            keyring.import_signer(signer)

    def test_keyserver_source(self, mock_runner, keyring):
        signer = Signer(
            name="keyserver-signer",
            fingerprint=LND_SIGNER.fingerprint,
            keyserver="hkps://keys.openpgp.org",
        )
        mock_runner.on("--list-keys", signer.fingerprint, output=colons_listing(signer.fingerprint))
        keyring.prepare()
        keyring.import_signer(signer)
        assert mock_runner.calls_with("--recv-keys", signer.fingerprint)
        assert mock_runner.calls_with("--keyserver", "hkps://keys.openpgp.org")

    def test_keyserver_returns_wrong_key(self, mock_runner, keyring):
        signer = Signer(
            name="keyserver-signer",
            fingerprint=LND_SIGNER.fingerprint,
            keyserver="hkps://keys.openpgp.org",
        )
        mock_runner.on("--list-keys", output="")
        keyring.prepare()
        with pytest.raises(FingerprintMismatch):
            keyring.import_signer(signer)

    def test_verify_without_gpg(self, mock_runner, keyring, workdir):
        mock_runner.on("--verify", output="gpg: command not found", returncode=127)
        with pytest.raises(CommandError, match="not installed"):
            keyring.verify_detached(workdir / "sig", workdir / "data")


# ── Threshold strategy ───────────────────────────────────────────────


class TestVerifyThreshold:
    def _verify(self, keyring, workdir, listing_content=b"release tarball"):
        artifact = _artifact(workdir)
        listing = _listing(workdir, "SHA256SUMS", listing_content)
        signature = workdir / "SHA256SUMS.asc"
        signature.write_text("sig")
        return verify_threshold(
            keyring, BITCOIN_CORE_POLICY, artifact, listing, signature, family="bitcoin-core",
        )

    @pytest.mark.parametrize("count", range(6))
    def test_threshold_boundary(self, gpg, keyring, workdir, count):
        _publish_all(gpg, keyring)
        gpg.sign(good=BITCOIN_CORE_SIGNERS[:count])

        if count < 2:
            with pytest.raises(InsufficientSignatures) as exc:
                self._verify(keyring, workdir)
            assert exc.value.observed == count
            assert exc.value.required == 2
        else:
            report = self._verify(keyring, workdir)
            assert report.good_count == count
            assert report.required == 2
            assert report.strategy == "threshold"
            assert report.checksum_verified
            assert report.sha256 == hashlib.sha256(b"release tarball").hexdigest()

    def test_nonzero_gpg_exit_still_counts_good_signatures(self, gpg, keyring, workdir):
        # One builder's key is unavailable: gpg exits 2 but two others verified
        _publish_all(gpg, keyring)
        gpg.sign(good=BITCOIN_CORE_SIGNERS[:2], bad=BITCOIN_CORE_SIGNERS[2:3], returncode=2)
        report = self._verify(keyring, workdir)
        assert report.good_signers == ["fanquake", "guggero"]

    def test_one_char_fingerprint_substitution_is_fatal(self, gpg, keyring, workdir):
        _publish_all(gpg, keyring)
        target = BITCOIN_CORE_SIGNERS[2]
        last = "0" if target.fingerprint[-1] != "0" else "1"
        gpg.publish_key(target, keyring.key_file(target), fingerprint=target.fingerprint[:-1] + last)
        gpg.sign(good=BITCOIN_CORE_SIGNERS)

        with pytest.raises(FingerprintMismatch) as exc:
            self._verify(keyring, workdir)
        assert exc.value.signer == target.name
        assert gpg.runner.calls_with("--verify") == []

    def test_unreachable_keys_are_skipped(self, gpg, keyring, workdir):
        _publish_all(gpg, keyring, BITCOIN_CORE_SIGNERS[:2])
        gpg.sign(good=BITCOIN_CORE_SIGNERS[:2])
        report = self._verify(keyring, workdir)
        assert report.good_count == 2

    def test_unreachable_keys_can_starve_threshold(self, gpg, keyring, workdir):
        _publish_all(gpg, keyring, BITCOIN_CORE_SIGNERS[:1])
        gpg.sign(good=BITCOIN_CORE_SIGNERS[:1])
        with pytest.raises(InsufficientSignatures):
            self._verify(keyring, workdir)

    def test_checksum_checked_even_with_every_signature(self, gpg, keyring, workdir):
        _publish_all(gpg, keyring)
        gpg.sign(good=BITCOIN_CORE_SIGNERS)
        with pytest.raises(ChecksumMismatch):
            self._verify(keyring, workdir, listing_content=b"different tarball")

    def test_untrusted_good_signatures_do_not_count(self, gpg, keyring, workdir):
        _publish_all(gpg, keyring)
        outsider = Signer(name="outsider", fingerprint="1" * 40, key_url="https://x/o.asc")
        gpg.sign(good=[BITCOIN_CORE_SIGNERS[0], outsider])
        with pytest.raises(InsufficientSignatures) as exc:
            self._verify(keyring, workdir)
        assert exc.value.observed == 1


# ── Single-signer strategy ───────────────────────────────────────────


class TestVerifySingleSigner:
    def _manifest(self, workdir, content=b"release tarball") -> Path:
        return _listing(workdir, "manifest-v0.20.0-beta.txt", content)

    def _verify(self, gpg, keyring, workdir, manifest, policy=LND_POLICY):
        return verify_single_signer(
            keyring, gpg.fetcher, policy, _artifact(workdir), manifest, SIG_URL, family="lnd",
        )

    def _publish(self, gpg, keyring, workdir, *, good=True):
        gpg.publish_key(LND_SIGNER, keyring.key_file(LND_SIGNER))
        gpg.fetcher.serve("manifest-roasbeef-v0.20.0-beta.sig", "sig")
        if good:
            gpg.sign(good=[LND_SIGNER])
        else:
            gpg.sign(bad=[LND_SIGNER])

    def test_good_signature(self, gpg, keyring, workdir):
        self._publish(gpg, keyring, workdir)
        report = self._verify(gpg, keyring, workdir, self._manifest(workdir))
        assert report.strategy == "single-signer"
        assert report.good_signers == ["roasbeef"]
        assert report.checksum_verified
        assert report.sha256 == hashlib.sha256(b"release tarball").hexdigest()
        assert not report.degraded
        assert (workdir / "manifest-roasbeef-v0.20.0-beta.sig").is_file()

    def test_missing_manifest_degrades(self, gpg, keyring, workdir):
        gpg.publish_key(LND_SIGNER, keyring.key_file(LND_SIGNER))
        report = self._verify(gpg, keyring, workdir, None)
        assert report.degraded
        assert not report.checksum_verified
        assert report.good_signers == []
        # Without a manifest the digest is the one observed on disk
        assert report.sha256 == hashlib.sha256(b"release tarball").hexdigest()
        assert gpg.runner.calls_with("--verify") == []

    def test_missing_manifest_without_fallback(self, gpg, keyring, workdir):
        strict = VerificationPolicy(signers=(LND_SIGNER,), threshold=1)
        gpg.publish_key(LND_SIGNER, keyring.key_file(LND_SIGNER))
        with pytest.raises(TrustUnavailable, match="manifest unavailable"):
            self._verify(gpg, keyring, workdir, None, policy=strict)

    def test_missing_key_with_manifest(self, gpg, keyring, workdir):
        gpg.fetcher.serve("manifest-roasbeef-v0.20.0-beta.sig", "sig")
        with pytest.raises(TrustUnavailable, match="signing key"):
            self._verify(gpg, keyring, workdir, self._manifest(workdir))

    def test_missing_signature(self, gpg, keyring, workdir):
        gpg.publish_key(LND_SIGNER, keyring.key_file(LND_SIGNER))
        with pytest.raises(TrustUnavailable, match="signature unavailable"):
            self._verify(gpg, keyring, workdir, self._manifest(workdir))

    def test_bad_signature(self, gpg, keyring, workdir):
        self._publish(gpg, keyring, workdir, good=False)
        with pytest.raises(BadSignature):
            self._verify(gpg, keyring, workdir, self._manifest(workdir))

    def test_substituted_key(self, gpg, keyring, workdir):
        gpg.publish_key(
            LND_SIGNER, keyring.key_file(LND_SIGNER), fingerprint=BITCOIN_CORE_SIGNERS[0].fingerprint,
        )
        with pytest.raises(FingerprintMismatch):
            self._verify(gpg, keyring, workdir, None)

    def test_checksum_mismatch(self, gpg, keyring, workdir):
        self._publish(gpg, keyring, workdir)
        with pytest.raises(ChecksumMismatch):
            self._verify(gpg, keyring, workdir, self._manifest(workdir, b"tampered"))
