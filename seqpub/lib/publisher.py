"""Run publisher: publish a sequencing run's output to the archive.

Run-level files (instrument XML and InterOp metrics) go to the run's
collection. Every product found through its composition file then has its
alignment, index, ancillary, genotype and QC files published, in that
order. Each of these category calls is isolated: a failure inside one is
logged and counted as a single error and the run moves on, until the shared
error budget runs out.

Example:
    settings = load_settings("run_26291.yaml")
    publisher = RunPublisher(settings, get_store(settings.archive_location))
    num_files, num_published, num_errors = publisher.publish_all()
    publisher.write_restart_file()
"""

from __future__ import annotations

import os
import posixpath
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from seqpub.lib.batch import BatchResult, PublishContext, SecondaryTagsFn, SyncEngine
from seqpub.lib.catalog import Category, FileCatalog, Product, RunFile
from seqpub.lib.checkpoint import CheckpointStore, ErrorBudget
from seqpub.lib.composition import read_composition_file
from seqpub.lib.config_loader import PublisherSettings
from seqpub.lib.errors import ConfigurationError
from seqpub.lib.identity import IdentityProvider
from seqpub.lib.inspect import AlignmentInspector
from seqpub.lib.integrity import IntegrityResolver
from seqpub.lib.logging import PublishLogger
from seqpub.lib.metadata import MetadataSynthesizer, Tag
from seqpub.lib.storage.base import RemoteStore

logger = PublishLogger(__name__)

__all__ = ["RunPublisher", "find_run_files"]


def find_run_files(source_directory: str) -> List[str]:
    """Every regular file below a run directory, sorted."""
    found = []
    for dirpath, _, filenames in os.walk(source_directory):
        for filename in filenames:
            found.append(os.path.join(dirpath, filename))
    return sorted(found)


class RunPublisher:
    """Publish the files of one sequencing run.

    Args:
        settings: validated publisher settings
        store: archive store to publish to
        identity_provider: source of sample/study tags and permissions;
            when None, permissions are left alone
        inspector: reads alignment headers; when None, alignment tags omit
            the alignment, pairing and reference facts
        run_files: run files to consider instead of walking
            ``settings.source_directory``
    """

    def __init__(
        self,
        settings: PublisherSettings,
        store: RemoteStore,
        identity_provider: Optional[IdentityProvider] = None,
        inspector: Optional[AlignmentInspector] = None,
        run_files: Optional[Sequence[str]] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.identity_provider = identity_provider
        self.inspector = inspector

        self.catalog = FileCatalog(
            file_format=settings.file_format,
            ancillary_suffixes=settings.ancillary_suffixes,
            genotype_suffixes=settings.genotype_suffixes,
            qc_dir=settings.qc_dir,
            interop_dir=settings.interop_dir,
        )
        self.synthesizer = MetadataSynthesizer(settings.id_run, settings.alt_process)

        self.checkpoints = CheckpointStore(settings.restart_path)
        self.checkpoints.load()
        self.budget = ErrorBudget(settings.max_errors)
        self.engine = SyncEngine(
            store, self.checkpoints, self.budget, force=settings.force
        )

        self._run_files = list(run_files) if run_files is not None else None
        self._groups: Optional[Dict[Category, List[RunFile]]] = None
        self._compositions: Dict[str, Product] = {}
        self.result = BatchResult()

        logger.set_context(id_run=settings.id_run)

    # Discovery

    @property
    def run_files(self) -> List[str]:
        if self._run_files is None:
            self._run_files = find_run_files(self.settings.source_directory)
            logger.debug(
                "Found %d files under %s", len(self._run_files), self.settings.source_directory
            )
        return self._run_files

    @property
    def groups(self) -> Dict[Category, List[RunFile]]:
        if self._groups is None:
            self._groups = self.catalog.classify(self.run_files)
        return self._groups

    @property
    def resolver(self) -> IntegrityResolver:
        return IntegrityResolver(self.run_files, self.settings.num_reads_property)

    def composition_files(self) -> List[str]:
        return self.catalog.composition_files(self.run_files)

    def product(self, composition_file: str) -> Product:
        """The product described by a composition file, read on first use."""
        if composition_file not in self._compositions:
            name, _, _ = self.catalog.parse_product_name(composition_file)
            self._compositions[composition_file] = Product(
                name=name,
                composition_file=composition_file,
                composition=read_composition_file(composition_file),
            )
        return self._compositions[composition_file]

    def destination_collection(self) -> str:
        """Collection product files go to: dest collection plus alt_process."""
        collection = self.settings.collection
        if self.settings.alt_process:
            collection = posixpath.join(collection, self.settings.alt_process)
        logger.debug("Publish collection is '%s'", collection)
        return collection

    def _files(self, category: Category, product: Optional[Product] = None) -> List[str]:
        name = product.name if product else None
        return self.catalog.files_for(self.groups, category, name)

    def _secondary(
        self, product: Product, with_spiked_control: bool
    ) -> Optional[SecondaryTagsFn]:
        provider = self.identity_provider
        if provider is None:
            return None

        def secondary(ctx: PublishContext):
            return self.synthesizer.secondary_tags(product, provider, with_spiked_control)

        return secondary

    # Run-level

    def publish_xml_files(self) -> BatchResult:
        files = self._files(Category.XML)
        logger.debug("Publishing XML files: %s", files)
        return self.engine.publish_batch(
            files,
            self.settings.collection,
            lambda ctx: self.synthesizer.primary_tags(Category.XML),
        )

    def publish_interop_files(self) -> BatchResult:
        files = self._files(Category.INTEROP)
        logger.debug("Publishing InterOp files: %s", files)
        return self.engine.publish_batch(
            files,
            self.settings.collection,
            lambda ctx: self.synthesizer.primary_tags(Category.INTEROP),
        )

    # Product-level

    def publish_alignment_files(
        self, composition_file: str, with_spiked_control: bool = False
    ) -> BatchResult:
        """Publish a product's alignment files in the configured format.

        The read count and digest are resolved before anything is
        transferred; a missing or malformed summary file fails the call.
        """
        product = self.product(composition_file)
        facts = self.resolver.facts(product.name)

        def primary(ctx: PublishContext) -> List[Tag]:
            info = self.inspector.inspect(ctx.local_path) if self.inspector else None
            return self.synthesizer.primary_tags(
                Category.ALIGNMENT, product, facts=facts, alignment_info=info
            )

        suffix = f".{self.settings.file_format}"
        files = [f for f in self._files(Category.ALIGNMENT, product) if f.endswith(suffix)]
        logger.debug("Publishing alignment files for %s: %s", product.name, files)

        return self.engine.publish_batch(
            files,
            self.destination_collection(),
            primary,
            self._secondary(product, with_spiked_control),
        )

    def publish_index_files(
        self, composition_file: str, with_spiked_control: bool = False
    ) -> BatchResult:
        """Publish a product's alignment index files.

        An alignment without reads has no index worth keeping, so nothing is
        considered when the read count is zero.
        """
        product = self.product(composition_file)
        if self.resolver.num_reads(product.name) == 0:
            logger.debug("Skipping index files for %s: no reads", product.name)
            return BatchResult()

        return self._publish_product_files(
            Category.INDEX, product, self.destination_collection(), with_spiked_control
        )

    def publish_ancillary_files(
        self, composition_file: str, with_spiked_control: bool = False
    ) -> BatchResult:
        return self._publish_product_files(
            Category.ANCILLARY,
            self.product(composition_file),
            self.destination_collection(),
            with_spiked_control,
        )

    def publish_genotype_files(
        self, composition_file: str, with_spiked_control: bool = False
    ) -> BatchResult:
        return self._publish_product_files(
            Category.GENOTYPE,
            self.product(composition_file),
            self.destination_collection(),
            with_spiked_control,
        )

    def publish_qc_files(
        self, composition_file: str, with_spiked_control: bool = False
    ) -> BatchResult:
        """Publish a product's QC JSON files to the ``qc`` sub-collection."""
        collection = posixpath.join(self.destination_collection(), self.settings.qc_collection)
        return self._publish_product_files(
            Category.QC, self.product(composition_file), collection, with_spiked_control
        )

    def _publish_product_files(
        self,
        category: Category,
        product: Product,
        collection: str,
        with_spiked_control: bool,
    ) -> BatchResult:
        files = self._files(category, product)
        logger.debug("Publishing %s files for %s: %s", category.value, product.name, files)
        return self.engine.publish_batch(
            files,
            collection,
            lambda ctx: self.synthesizer.primary_tags(category, product),
            self._secondary(product, with_spiked_control),
        )

    # Whole run

    def _call(
        self,
        fn: Callable[[], BatchResult],
        category: Category,
        product: Optional[str] = None,
    ) -> BatchResult:
        what = f"{category.value} files" + (f" for {product}" if product else "")
        with logger.scope(product=product, category=category.value):
            try:
                result = fn()
            except ConfigurationError:
                raise
            except Exception as exc:
                self.budget.record_failure()
                logger.error("Failed publishing %s: %s", what, exc)
                return BatchResult(errors=1)

            if result.errors > 0:
                logger.error(
                    "Encountered %d errors publishing %d %s",
                    result.errors,
                    result.considered,
                    what,
                )
        return result

    def publish_all(self, with_spiked_control: Optional[bool] = None) -> Tuple[int, int, int]:
        """Publish every run-level and product-level file of the run.

        Args:
            with_spiked_control: include spiked-control identity metadata;
                defaults to the configured value

        Returns:
            (number of files, number published, number of errors)
        """
        spk = self.settings.with_spiked_control if with_spiked_control is None else with_spiked_control

        total = self._call(self.publish_xml_files, Category.XML)
        total += self._call(self.publish_interop_files, Category.INTEROP)

        cfiles = self.composition_files()
        logger.debug("Found composition files: %s", cfiles)

        for cfile in cfiles:
            name, _, _ = self.catalog.parse_product_name(cfile)
            for category, publish in (
                (Category.ALIGNMENT, self.publish_alignment_files),
                (Category.INDEX, self.publish_index_files),
                (Category.ANCILLARY, self.publish_ancillary_files),
                (Category.GENOTYPE, self.publish_genotype_files),
                (Category.QC, self.publish_qc_files),
            ):
                total += self._call(lambda: publish(cfile, spk), category, name)

        self.result = total
        logger.info(
            "Published %d of %d files (%d errors)", total.published, total.considered, total.errors
        )
        logger.metric("files_considered", total.considered, unit="files")
        logger.metric("files_published", total.published, unit="files")
        logger.metric("publish_errors", total.errors, unit="errors")
        return total.as_tuple()

    def write_restart_file(self) -> None:
        """Write the restart state to its file."""
        self.checkpoints.flush()
